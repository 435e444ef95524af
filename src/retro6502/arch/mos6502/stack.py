# src/retro6502/arch/mos6502/stack.py
"""
MOS 6502 スタック操作。

スタックは $0100-$01FF の1ページに固定され、SPはそのページ内の8bitオフセット。
プッシュは「書き込み → SPデクリメント」、プルは「SPインクリメント → 読み出し」。
SPのオーバーフロー / アンダーフローはラップアラウンドとして定義された挙動であり、エラーではない。
"""
from retro6502.transport.bus import Bus
from retro6502.arch.mos6502.state import Mos6502CpuState

STACK_BASE = 0x0100

def push(state: Mos6502CpuState, bus: Bus, value: int) -> None:
    bus.write(STACK_BASE | state.sp, value & 0xFF)
    state.sp = state.sp - 1

def pull(state: Mos6502CpuState, bus: Bus) -> int:
    state.sp = state.sp + 1
    return bus.read(STACK_BASE | state.sp)

# @intent:note 上位バイトを先に積むため、スタックの最上位には下位バイトが来る。
def push_word(state: Mos6502CpuState, bus: Bus, value: int) -> None:
    push(state, bus, (value >> 8) & 0xFF)
    push(state, bus, value & 0xFF)

def pull_word(state: Mos6502CpuState, bus: Bus) -> int:
    lo = pull(state, bus)
    hi = pull(state, bus)
    return (hi << 8) | lo
