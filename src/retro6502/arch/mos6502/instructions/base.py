# src/retro6502/arch/mos6502/instructions/base.py
"""
MOS 6502 アドレッシングモード解決ロジック。
"""
from enum import Enum
from typing import Callable, Dict, List, NamedTuple, Optional

from retro6502.transport.bus import Bus
from retro6502.arch.mos6502.state import Mos6502CpuState

# @intent:responsibility 13種類のアドレッシングモードを表すタグ。
class AddressingMode(Enum):
    IMPLIED = "imp"
    ACCUMULATOR = "acc"
    IMMEDIATE = "imm"
    ZERO_PAGE = "zp"
    ZERO_PAGE_X = "zpx"
    ZERO_PAGE_Y = "zpy"
    ABSOLUTE = "abs"
    ABSOLUTE_X = "abx"
    ABSOLUTE_Y = "aby"
    INDIRECT = "ind"
    INDEXED_INDIRECT = "izx"
    INDIRECT_INDEXED = "izy"
    RELATIVE = "rel"

# @intent:responsibility アドレッシングモードの解決結果。
# address: 解決された実効アドレス (Implied / Accumulator / Immediate の場合はNone)
# value: Immediateの場合の値、それ以外はNone
# page_crossed: インデックス加算でページ境界を越えたか
# operand_str: 逆アセンブリ用のオペランド文字列表現
# operand_bytes: オペランドとしてフェッチされたバイト列
class AddressingResult(NamedTuple):
    address: Optional[int]
    value: Optional[int]
    page_crossed: bool
    operand_str: str
    operand_bytes: List[int]

# @intent:responsibility ページ境界交差判定。
def is_page_crossed(addr1: int, addr2: int) -> bool:
    return (addr1 & 0xFF00) != (addr2 & 0xFF00)

def _operand(bus: Bus, pc: int, index: int) -> int:
    return bus.read((pc + index) & 0xFFFF)

# --- Addressing Modes ---

def addr_implied(pc: int, bus: Bus, state: Mos6502CpuState) -> AddressingResult:
    return AddressingResult(None, None, False, "", [])

# @intent:note オペランドはAレジスタそのもの。
def addr_accumulator(pc: int, bus: Bus, state: Mos6502CpuState) -> AddressingResult:
    return AddressingResult(None, None, False, "A", [])

# @intent:responsibility Immediate Mode (#$xx)
def addr_immediate(pc: int, bus: Bus, state: Mos6502CpuState) -> AddressingResult:
    val = _operand(bus, pc, 1)
    return AddressingResult(None, val, False, f"#${val:02X}", [val])

# @intent:responsibility Zero Page Mode ($xx)
def addr_zeropage(pc: int, bus: Bus, state: Mos6502CpuState) -> AddressingResult:
    addr = _operand(bus, pc, 1)
    return AddressingResult(addr, None, False, f"${addr:02X}", [addr])

# @intent:responsibility Zero Page, X Mode ($xx,X)
# @intent:note ゼロページ内でラップアラウンドする ($FF + 2 -> $01)
def addr_zeropage_x(pc: int, bus: Bus, state: Mos6502CpuState) -> AddressingResult:
    base = _operand(bus, pc, 1)
    addr = (base + state.x) & 0xFF
    return AddressingResult(addr, None, False, f"${base:02X},X", [base])

# @intent:responsibility Zero Page, Y Mode ($xx,Y) - LDX, STX (と一部の非公式命令) のみ
def addr_zeropage_y(pc: int, bus: Bus, state: Mos6502CpuState) -> AddressingResult:
    base = _operand(bus, pc, 1)
    addr = (base + state.y) & 0xFF
    return AddressingResult(addr, None, False, f"${base:02X},Y", [base])

# @intent:responsibility Absolute Mode ($xxxx)
def addr_absolute(pc: int, bus: Bus, state: Mos6502CpuState) -> AddressingResult:
    lo = _operand(bus, pc, 1)
    hi = _operand(bus, pc, 2)
    addr = (hi << 8) | lo
    return AddressingResult(addr, None, False, f"${addr:04X}", [lo, hi])

# @intent:note ページ境界を越えたかどうかのみを返し、サイクル加算は命令テーブルの page_penalty で決まる。
#              ストア命令やリードモディファイライト命令は常に固定サイクル。
def addr_absolute_x(pc: int, bus: Bus, state: Mos6502CpuState) -> AddressingResult:
    lo = _operand(bus, pc, 1)
    hi = _operand(bus, pc, 2)
    base_addr = (hi << 8) | lo
    addr = (base_addr + state.x) & 0xFFFF
    return AddressingResult(addr, None, is_page_crossed(base_addr, addr), f"${base_addr:04X},X", [lo, hi])

def addr_absolute_y(pc: int, bus: Bus, state: Mos6502CpuState) -> AddressingResult:
    lo = _operand(bus, pc, 1)
    hi = _operand(bus, pc, 2)
    base_addr = (hi << 8) | lo
    addr = (base_addr + state.y) & 0xFFFF
    return AddressingResult(addr, None, is_page_crossed(base_addr, addr), f"${base_addr:04X},Y", [lo, hi])

# @intent:responsibility Indirect Mode ($xxxx) - JMP only
# @intent:note ページ境界バグを再現する: ポインタが$xxFFの場合、上位バイトは$xx00から読む。
def addr_indirect(pc: int, bus: Bus, state: Mos6502CpuState) -> AddressingResult:
    ptr_lo = _operand(bus, pc, 1)
    ptr_hi = _operand(bus, pc, 2)
    ptr = (ptr_hi << 8) | ptr_lo

    eff_lo = bus.read(ptr)
    eff_hi = bus.read((ptr & 0xFF00) | ((ptr + 1) & 0x00FF))

    addr = (eff_hi << 8) | eff_lo
    return AddressingResult(addr, None, False, f"(${ptr:04X})", [ptr_lo, ptr_hi])

# @intent:responsibility Indexed Indirect Mode ($xx,X) - "Pre-indexed"
# @intent:note ゼロページ内でXを加算(ラップアラウンド)し、そこにあるポインタを読む。
def addr_indexed_indirect(pc: int, bus: Bus, state: Mos6502CpuState) -> AddressingResult:
    base = _operand(bus, pc, 1)
    ptr_addr = (base + state.x) & 0xFF

    lo = bus.read(ptr_addr)
    hi = bus.read((ptr_addr + 1) & 0xFF)

    addr = (hi << 8) | lo
    return AddressingResult(addr, None, False, f"(${base:02X},X)", [base])

# @intent:responsibility Indirect Indexed Mode ($xx),Y - "Post-indexed"
# @intent:note ゼロページのポインタを読み、ベースアドレスを得てからYを加算。
def addr_indirect_indexed(pc: int, bus: Bus, state: Mos6502CpuState) -> AddressingResult:
    ptr_addr = _operand(bus, pc, 1)

    lo = bus.read(ptr_addr)
    hi = bus.read((ptr_addr + 1) & 0xFF)
    base_addr = (hi << 8) | lo

    addr = (base_addr + state.y) & 0xFFFF
    return AddressingResult(addr, None, is_page_crossed(base_addr, addr), f"(${ptr_addr:02X}),Y", [ptr_addr])

# @intent:responsibility Relative Mode (Branch)
# @intent:note 戻り値のアドレスは「分岐先の絶対アドレス」 = 命令直後のアドレス + 符号付きオフセット。
def addr_relative(pc: int, bus: Bus, state: Mos6502CpuState) -> AddressingResult:
    offset = _operand(bus, pc, 1)
    signed = offset - 0x100 if offset >= 0x80 else offset
    dest_addr = (pc + 2 + signed) & 0xFFFF
    return AddressingResult(dest_addr, None, False, f"${dest_addr:04X}", [offset])


AddrFunc = Callable[[int, Bus, Mos6502CpuState], AddressingResult]

MODE_RESOLVERS: Dict[AddressingMode, AddrFunc] = {
    AddressingMode.IMPLIED: addr_implied,
    AddressingMode.ACCUMULATOR: addr_accumulator,
    AddressingMode.IMMEDIATE: addr_immediate,
    AddressingMode.ZERO_PAGE: addr_zeropage,
    AddressingMode.ZERO_PAGE_X: addr_zeropage_x,
    AddressingMode.ZERO_PAGE_Y: addr_zeropage_y,
    AddressingMode.ABSOLUTE: addr_absolute,
    AddressingMode.ABSOLUTE_X: addr_absolute_x,
    AddressingMode.ABSOLUTE_Y: addr_absolute_y,
    AddressingMode.INDIRECT: addr_indirect,
    AddressingMode.INDEXED_INDIRECT: addr_indexed_indirect,
    AddressingMode.INDIRECT_INDEXED: addr_indirect_indexed,
    AddressingMode.RELATIVE: addr_relative,
}

# オペコードに続くオペランドのバイト数
OPERAND_LENGTH: Dict[AddressingMode, int] = {
    AddressingMode.IMPLIED: 0,
    AddressingMode.ACCUMULATOR: 0,
    AddressingMode.IMMEDIATE: 1,
    AddressingMode.ZERO_PAGE: 1,
    AddressingMode.ZERO_PAGE_X: 1,
    AddressingMode.ZERO_PAGE_Y: 1,
    AddressingMode.ABSOLUTE: 2,
    AddressingMode.ABSOLUTE_X: 2,
    AddressingMode.ABSOLUTE_Y: 2,
    AddressingMode.INDIRECT: 2,
    AddressingMode.INDEXED_INDIRECT: 1,
    AddressingMode.INDIRECT_INDEXED: 1,
    AddressingMode.RELATIVE: 1,
}

# @intent:responsibility モードタグに対応する解決関数を呼び出す。
def resolve(mode: AddressingMode, pc: int, bus: Bus, state: Mos6502CpuState) -> AddressingResult:
    return MODE_RESOLVERS[mode](pc, bus, state)

# @intent:responsibility 命令のオペランド値を取得する。Immediateなら値そのもの、それ以外は実効アドレスから読む。
def operand_value(bus: Bus, addr_res: AddressingResult) -> int:
    if addr_res.value is not None:
        return addr_res.value
    return bus.read(addr_res.address)
