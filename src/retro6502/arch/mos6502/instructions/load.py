# src/retro6502/arch/mos6502/instructions/load.py
"""
MOS 6502 転送系命令 (Load/Store/Transfer)。

各ハンドラは (state, bus, addr_res) を受け取り、stateをその場で更新する。
"""
from retro6502.transport.bus import Bus
from retro6502.arch.mos6502.state import Mos6502CpuState
from retro6502.arch.mos6502.instructions.base import AddressingResult, operand_value

# --- LDA / LDX / LDY ---
# @intent:responsibility メモリからレジスタへロードし、N, Zフラグを更新。
def lda(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    state.a = operand_value(bus, addr_res)
    state.update_zero_negative(state.a)

def ldx(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    state.x = operand_value(bus, addr_res)
    state.update_zero_negative(state.x)

def ldy(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    state.y = operand_value(bus, addr_res)
    state.update_zero_negative(state.y)

# --- STA / STX / STY ---
# @intent:responsibility レジスタの内容をメモリへストア。フラグ変化なし。
def sta(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    bus.write(addr_res.address, state.a)

def stx(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    bus.write(addr_res.address, state.x)

def sty(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    bus.write(addr_res.address, state.y)

# --- Register Transfers (TAX, TAY, TXA, TYA, TSX, TXS) ---

def tax(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    state.x = state.a
    state.update_zero_negative(state.x)

def tay(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    state.y = state.a
    state.update_zero_negative(state.y)

def txa(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    state.a = state.x
    state.update_zero_negative(state.a)

def tya(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    state.a = state.y
    state.update_zero_negative(state.a)

# @intent:note TSXはSP(8bit)からXへ転送。N, Z更新あり。
def tsx(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    state.x = state.sp
    state.update_zero_negative(state.x)

# @intent:note TXSはXからSPへ転送。N, Zフラグは更新 *されない*。
def txs(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    state.sp = state.x
