# retro6502/core/state.py
"""
Core Layer (CPU状態の基底)

実行エンジンとデバッガが共通して参照するレジスタはPCとSPだけです。
6502のレジスタファイルは arch.mos6502.state.Mos6502CpuState がこれを拡張して定義します。
"""
from dataclasses import dataclass

# @intent:responsibility 全てのCPU状態が持つPCとSP。Snapshotへはdeepcopyで複製される。
@dataclass
class CpuState:
    pc: int = 0x0000
    sp: int = 0x0000
