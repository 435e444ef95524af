# src/retro6502/arch/mos6502/instructions/alu.py
"""
MOS 6502 算術論理演算命令 (ALU)。
NMOS 6502 のBCD（10進）モードをサポートする。
"""
from typing import Callable

from retro6502.transport.bus import Bus
from retro6502.arch.mos6502.state import Mos6502CpuState
from retro6502.arch.mos6502.instructions.base import AddressingResult, operand_value

# --- Read-Modify-Write 共通処理 ---

# @intent:responsibility アキュムレータまたはメモリの値を読み、演算結果を書き戻す。
# @intent:note addressがNoneの場合はAccumulatorモード。
def modify(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult,
           op: Callable[[Mos6502CpuState, int], int]) -> int:
    if addr_res.address is None:
        state.a = op(state, state.a)
        return state.a
    res = op(state, bus.read(addr_res.address)) & 0xFF
    bus.write(addr_res.address, res)
    return res

# --- Logical Operations (AND, ORA, EOR, BIT) ---

def and_(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    state.a = state.a & operand_value(bus, addr_res)
    state.update_zero_negative(state.a)

def ora(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    state.a = state.a | operand_value(bus, addr_res)
    state.update_zero_negative(state.a)

def eor(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    state.a = state.a ^ operand_value(bus, addr_res)
    state.update_zero_negative(state.a)

# @intent:note BIT命令はメモリの値のビット6, 7をそれぞれV, Nフラグにコピーし、A & Mの結果でZフラグを設定する。
def bit(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    val = operand_value(bus, addr_res)
    state.update_flags(z=(state.a & val) == 0, v=(val & 0x40) != 0, n=(val & 0x80) != 0)

# --- Arithmetic Operations (ADC, SBC) ---

# @intent:responsibility NMOS 6502 のBCD加算。
# @intent:note Zはバイナリ加算の結果から、N, Vは上位桁補正前の中間結果から決まる（NMOSの挙動）。
def _adc_decimal(state: Mos6502CpuState, val: int) -> None:
    a = state.a
    c = 1 if state.flag_c else 0

    lo = (a & 0x0F) + (val & 0x0F) + c
    if lo >= 0x0A:
        lo = ((lo + 0x06) & 0x0F) + 0x10
    res = (a & 0xF0) + (val & 0xF0) + lo

    state.update_flags(
        n=(res & 0x80) != 0,
        v=(~(a ^ val) & (a ^ res) & 0x80) != 0,
        z=((a + val + c) & 0xFF) == 0,
    )
    if res >= 0xA0:
        res += 0x60
    state.update_flags(c=res >= 0x100)
    state.a = res

# @intent:responsibility NMOS 6502 のBCD減算。フラグはバイナリ減算と同一。
def _sbc_decimal(state: Mos6502CpuState, val: int) -> None:
    a = state.a
    c = 1 if state.flag_c else 0

    # N, V, Z, C はバイナリモードの結果で更新する
    state.update_carry_overflow_for_sub(a, val, c)

    lo = (a & 0x0F) - (val & 0x0F) + c - 1
    if lo < 0:
        lo = ((lo - 0x06) & 0x0F) - 0x10
    res = (a & 0xF0) - (val & 0xF0) + lo
    if res < 0:
        res -= 0x60
    state.a = res

def add_to_accumulator(state: Mos6502CpuState, val: int) -> None:
    if state.flag_d:
        _adc_decimal(state, val)
    else:
        state.a = state.update_carry_overflow_for_add(state.a, val, 1 if state.flag_c else 0)

def subtract_from_accumulator(state: Mos6502CpuState, val: int) -> None:
    if state.flag_d:
        _sbc_decimal(state, val)
    else:
        state.a = state.update_carry_overflow_for_sub(state.a, val, 1 if state.flag_c else 0)

def adc(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    add_to_accumulator(state, operand_value(bus, addr_res))

def sbc(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    subtract_from_accumulator(state, operand_value(bus, addr_res))

# --- Compare Operations (CMP, CPX, CPY) ---
# @intent:note 結果を格納しない減算。N, Z, C を更新する。C は Reg >= Val（ボローなし）でセット。

def compare(state: Mos6502CpuState, reg_val: int, mem_val: int) -> None:
    diff = reg_val - mem_val
    state.update_flags(c=diff >= 0)
    state.update_zero_negative(diff)

def cmp(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    compare(state, state.a, operand_value(bus, addr_res))

def cpx(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    compare(state, state.x, operand_value(bus, addr_res))

def cpy(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    compare(state, state.y, operand_value(bus, addr_res))

# --- Shift / Rotate Operations (ASL, LSR, ROL, ROR) ---
# 値に対する演算。非公式命令 (SLO, RLA, SRE, RRA) からも使用する。

def shift_left(state: Mos6502CpuState, val: int) -> int:
    res = (val << 1) & 0xFF
    state.update_flags(c=(val & 0x80) != 0)
    state.update_zero_negative(res)
    return res

def shift_right(state: Mos6502CpuState, val: int) -> int:
    res = val >> 1
    state.update_flags(c=(val & 0x01) != 0)
    state.update_zero_negative(res) # N is always 0 for LSR
    return res

def rotate_left(state: Mos6502CpuState, val: int) -> int:
    res = ((val << 1) | (1 if state.flag_c else 0)) & 0xFF
    state.update_flags(c=(val & 0x80) != 0)
    state.update_zero_negative(res)
    return res

def rotate_right(state: Mos6502CpuState, val: int) -> int:
    res = (val >> 1) | (0x80 if state.flag_c else 0)
    state.update_flags(c=(val & 0x01) != 0)
    state.update_zero_negative(res)
    return res

def asl(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    modify(state, bus, addr_res, shift_left)

def lsr(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    modify(state, bus, addr_res, shift_right)

def rol(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    modify(state, bus, addr_res, rotate_left)

def ror(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    modify(state, bus, addr_res, rotate_right)

# --- Increment / Decrement (INC, DEC, INX, DEX, INY, DEY) ---
# @intent:note N, Z のみ更新。Cは変化しない。

def increment(state: Mos6502CpuState, val: int) -> int:
    res = (val + 1) & 0xFF
    state.update_zero_negative(res)
    return res

def decrement(state: Mos6502CpuState, val: int) -> int:
    res = (val - 1) & 0xFF
    state.update_zero_negative(res)
    return res

def inc(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    modify(state, bus, addr_res, increment)

def dec(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    modify(state, bus, addr_res, decrement)

def inx(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    state.x = increment(state, state.x)

def dex(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    state.x = decrement(state, state.x)

def iny(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    state.y = increment(state, state.y)

def dey(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    state.y = decrement(state, state.y)
