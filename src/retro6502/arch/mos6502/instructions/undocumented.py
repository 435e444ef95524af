# src/retro6502/arch/mos6502/instructions/undocumented.py
"""
MOS 6502 (NMOS) の非公式命令。

動作が安定しているもののみを実装する。多くは公式命令2つの組み合わせとして振る舞う。
動作が不安定な命令 (XAA, LXA, AHX, SHX, SHY, TAS) と JAM はここでは実装せず、
命令テーブル上で ILLEGAL に分類される。
"""
from retro6502.transport.bus import Bus
from retro6502.arch.mos6502.state import Mos6502CpuState
from retro6502.arch.mos6502.instructions.base import AddressingResult, operand_value
from retro6502.arch.mos6502.instructions.alu import (
    modify, compare, add_to_accumulator, subtract_from_accumulator,
    shift_left, shift_right, rotate_left, rotate_right, increment, decrement,
)

# @intent:note LAX = LDA + LDX
def lax(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    val = operand_value(bus, addr_res)
    state.a = val
    state.x = val
    state.update_zero_negative(val)

# @intent:note SAX: A & X をストア。フラグは変化しない。
def sax(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    bus.write(addr_res.address, state.a & state.x)

# DEC + CMP
def dcp(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    res = modify(state, bus, addr_res, decrement)
    compare(state, state.a, res)

# INC + SBC
def isc(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    res = modify(state, bus, addr_res, increment)
    subtract_from_accumulator(state, res)

# ASL + ORA
def slo(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    res = modify(state, bus, addr_res, shift_left)
    state.a = state.a | res
    state.update_zero_negative(state.a)

# ROL + AND
def rla(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    res = modify(state, bus, addr_res, rotate_left)
    state.a = state.a & res
    state.update_zero_negative(state.a)

# LSR + EOR
def sre(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    res = modify(state, bus, addr_res, shift_right)
    state.a = state.a ^ res
    state.update_zero_negative(state.a)

# @intent:note ROR + ADC。ADCにはRORで押し出されたキャリーが入る。
def rra(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    res = modify(state, bus, addr_res, rotate_right)
    add_to_accumulator(state, res)

# @intent:note ANC: AND #imm の後、Nフラグの値をCにコピーする。
def anc(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    state.a = state.a & operand_value(bus, addr_res)
    state.update_zero_negative(state.a)
    state.update_flags(c=state.flag_n)

# AND #imm + LSR A
def alr(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    state.a = shift_right(state, state.a & operand_value(bus, addr_res))

# @intent:note ARR: AND #imm + ROR A。ただしC, Vは加算器経由で決まり、Dフラグが立っているとBCD補正が入る。
def arr(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    t = state.a & operand_value(bus, addr_res)
    carry_in = 0x80 if state.flag_c else 0
    res = (t >> 1) | carry_in

    if not state.flag_d:
        state.update_zero_negative(res)
        state.update_flags(c=(res & 0x40) != 0, v=((res >> 6) ^ (res >> 5)) & 0x01)
        state.a = res
        return

    state.update_flags(n=carry_in != 0, z=res == 0, v=((t ^ res) & 0x40) != 0)
    if (t & 0x0F) + (t & 0x01) > 5:
        res = (res & 0xF0) | ((res + 0x06) & 0x0F)
    c = (t & 0xF0) + (t & 0x10) > 0x50
    if c:
        res = (res + 0x60) & 0xFF
    state.update_flags(c=c)
    state.a = res

# @intent:note SBX (AXS): X = (A & X) - #imm。CはCMPと同様、Vと10進モードの影響は受けない。
def sbx(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    t = state.a & state.x
    val = operand_value(bus, addr_res)
    compare(state, t, val)
    state.x = t - val

# @intent:note LAS: M & SP を A, X, SP に転送。
def las(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    val = operand_value(bus, addr_res) & state.sp
    state.a = val
    state.x = val
    state.sp = val
    state.update_zero_negative(val)

# @intent:responsibility ILLEGAL分類のオペコード用ハンドラ。
# @intent:note 実行エンジンの方針 (HALT / NOP) で処理されるため、呼び出されてもCPU状態を変更しない。
def illegal(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    pass
