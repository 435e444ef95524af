# retro6502/core/snapshot.py
"""
実行状態の不変スナップショット

このモジュールは、1命令の実行結果（CPU状態・命令・バスアクセス）を記録した
不変のデータ構造を定義します。トレース出力とデバッガに情報を提供します。
"""
from dataclasses import dataclass, field
from typing import List, Optional

from retro6502.core.state import CpuState
from retro6502.transport.bus import BusAccessType, BusAccess


# @intent:responsibility 実行された命令の詳細を記録します。
@dataclass(frozen=True) # 不変データ構造
class Operation:
    """
    デコードされた命令の詳細（HEX、ニーモニック、オペランド）を記録するデータクラス。
    cycle_count はデコード時点のサイクル数（基本サイクル + ページ境界ペナルティ）です。
    """
    opcode_hex: str # 例: "4C"
    mnemonic: str # 例: "JMP"
    operands: List[str] = field(default_factory=list) # 例: ["$1234"]
    operand_bytes: List[int] = field(default_factory=list) # 生のオペランドバイト
    cycle_count: int = 0
    length: int = 1 # 命令のバイト長

# @intent:responsibility 未定義オペコードの実行を分類して報告します。
@dataclass(frozen=True)
class IllegalOpcodeFault:
    """
    ILLEGALに分類されたオペコードを実行しようとしたことを示す報告。
    """
    address: int
    opcode: int
    mnemonic: str
    halted: bool

# @intent:responsibility 実行に関するメタデータを記録します。
@dataclass(frozen=True) # 不変データ構造
class Metadata:
    """
    実行に関するメタデータ（累計サイクル数、この命令のサイクル数、シンボル情報など）。
    """
    cycle_count: int # 累計
    instruction_cycles: int = 0 # この命令（または割り込み処理）で消費したサイクル数
    symbol_info: Optional[str] = None # 例: "main_loop: JMP $1234"

# @intent:responsibility ある一時点におけるCPUとバスの状態を不変に記録します。
@dataclass(frozen=True) # 不変データ構造
class Snapshot:
    """
    命令実行直後のCPU状態のコピーと、その命令で発生したバスアクセスの記録。
    """
    state: CpuState
    operation: Operation
    metadata: Metadata
    bus_activity: List[BusAccess] = field(default_factory=list)
    fault: Optional[IllegalOpcodeFault] = None
    halted: bool = False # この命令の後、CPUが停止状態にあるか

    # @intent:responsibility この命令で書き込まれたアドレスの一覧を返します。
    def written_addresses(self) -> List[int]:
        return [a.address for a in self.bus_activity if a.access_type == BusAccessType.WRITE]
