# retro6502/errors.py
"""
例外階層

プロジェクト全体で使用される例外クラスを定義します。
実行エンジン内部の制御フローには例外を使用しません。ここで定義される例外は、
設定・ロード・デバイスなど、命令実行の外側で発生するエラーを表します。

Retro6502Error (base)
├── DeviceError  - 周辺デバイスのハンドラが報告する障害（Busが吸収する）
├── ConfigError  - システム構成ファイルの不正 (ValueError互換)
└── LoaderError  - プログラムイメージの不正 (ValueError互換)
"""


# @intent:responsibility 本プロジェクトの全ての例外の基底クラスです。
class Retro6502Error(Exception):
    """
    retro6502が送出する全ての例外の基底クラス。
    """
    pass


# @intent:responsibility デバイスハンドラ内部の障害を表します。
# @intent:rationale Busはこの例外を捕捉してログに記録し、CPUの実行状態へは伝播させません。
class DeviceError(Retro6502Error):
    """
    メモリマップドデバイスが読み書きに失敗したことを示す例外。
    """
    pass


class ConfigError(Retro6502Error, ValueError):
    """
    YAMLシステム構成の内容が不正であることを示す例外。
    """
    pass


class LoaderError(Retro6502Error, ValueError):
    """
    プログラムイメージ（バイナリ / Intel HEX）の形式が不正であることを示す例外。
    """
    pass
