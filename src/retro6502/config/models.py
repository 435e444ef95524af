# retro6502/config/models.py
"""
YAMLシステム構成のデータモデル。
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional

@dataclass
class MemoryRegion:
    start: int
    end: int
    type: str  # "RAM", "ROM"
    label: str = ""

    @property
    def size(self) -> int:
        return self.end - self.start + 1

@dataclass
class ImageConfig:
    path: str
    offset: int = 0x0000  # 生バイナリの配置先。Intel HEXでは無視される

@dataclass
class CpuInitialState:
    use_reset_vector: bool = True  # Falseの場合、以下の値でリセット後の状態を上書きする
    pc: Optional[int] = None
    sp: Optional[int] = None
    registers: Dict[str, int] = field(default_factory=dict)  # "a", "x", "y", "p"

@dataclass
class SystemConfig:
    memory_map: List[MemoryRegion] = field(default_factory=list)
    images: List[ImageConfig] = field(default_factory=list)
    reset_vector: Optional[int] = None  # 指定された場合、$FFFC/$FFFDへ書き込む
    illegal_opcodes: str = "halt"  # "halt" | "nop"
    symbols: Dict[str, int] = field(default_factory=dict)  # ラベル名 -> アドレス (トレース表示用)
    initial_state: CpuInitialState = field(default_factory=CpuInitialState)
