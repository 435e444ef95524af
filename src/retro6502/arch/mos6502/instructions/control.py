# src/retro6502/arch/mos6502/instructions/control.py
"""
MOS 6502 制御系命令 (Branch, Jump, Stack, Flags, NOP, BRK/RTI)。

これらのハンドラが呼ばれる時点で、PCは既に命令長分だけ進められている。
分岐・ジャンプはPCへの明示的な代入として表現する。
"""
from retro6502.transport.bus import Bus
from retro6502.arch.mos6502.state import Mos6502CpuState
from retro6502.arch.mos6502.stack import push, pull, push_word, pull_word
from retro6502.arch.mos6502.instructions.base import AddressingResult, is_page_crossed

NMI_VECTOR = 0xFFFA
RESET_VECTOR = 0xFFFC
IRQ_VECTOR = 0xFFFE # BRKと共用

# --- Branch Instructions ---

# @intent:responsibility 条件成立時のみPCを分岐先に書き換え、追加サイクル数を返す。
# @intent:note 成立で+1、分岐先が「分岐命令の次の命令」と異なるページなら更に+1。
def _branch(state: Mos6502CpuState, addr_res: AddressingResult, condition: bool) -> int:
    if not condition:
        return 0
    target = addr_res.address
    extra = 2 if is_page_crossed(state.pc, target) else 1
    state.pc = target
    return extra

def bcc(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> int:
    return _branch(state, addr_res, not state.flag_c)

def bcs(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> int:
    return _branch(state, addr_res, state.flag_c)

def beq(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> int:
    return _branch(state, addr_res, state.flag_z)

def bne(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> int:
    return _branch(state, addr_res, not state.flag_z)

def bmi(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> int:
    return _branch(state, addr_res, state.flag_n)

def bpl(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> int:
    return _branch(state, addr_res, not state.flag_n)

def bvc(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> int:
    return _branch(state, addr_res, not state.flag_v)

def bvs(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> int:
    return _branch(state, addr_res, state.flag_v)

# --- Jump Instructions ---

def jmp(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    state.pc = addr_res.address

# @intent:note スタックに積むのは「JSR命令の最後のバイトのアドレス」(= 戻りアドレス - 1)。上位バイトが先。
def jsr(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    push_word(state, bus, state.pc - 1)
    state.pc = addr_res.address

def rts(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    state.pc = pull_word(state, bus) + 1

# --- Stack Operations (PHA, PHP, PLA, PLP) ---

def pha(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    push(state, bus, state.a)

# @intent:note PHPはBreak(B)とUnusedビットを常に1にした値を積む。レジスタ側は変化しない。
def php(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    push(state, bus, state.p.to_byte(brk=True))

def pla(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    state.a = pull(state, bus)
    state.update_zero_negative(state.a)

# @intent:note 積まれていた値をそのまま復元する。Bは保存値に従い、Unusedは常に1のまま。
def plp(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    state.p.load_byte(pull(state, bus))

# --- Flag Operations (CLC, SEC, etc) ---

def clc(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    state.update_flags(c=False)

def sec(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    state.update_flags(c=True)

def cli(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    state.update_flags(i=False)

def sei(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    state.update_flags(i=True)

def clv(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    state.update_flags(v=False)

def cld(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    state.update_flags(d=False)

def sed(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    state.update_flags(d=True)

# --- System / Other ---

# @intent:note PCの前進は命令長によって行われるため、NOP自体は何もしない。
def nop(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    pass

# @intent:responsibility 割り込みシーケンス: PC(上位, 下位)とステータスを積み、Iをセットしてベクタへ飛ぶ。
def interrupt(state: Mos6502CpuState, bus: Bus, return_addr: int, vector: int, brk: bool) -> None:
    push_word(state, bus, return_addr)
    push(state, bus, state.p.to_byte(brk=brk))
    state.update_flags(i=True)
    state.pc = bus.read_word(vector)

# @intent:note BRKは1バイト命令だが、戻りアドレスは直後のパディングバイトを飛ばした BRK + 2。
def brk(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    interrupt(state, bus, state.pc + 1, IRQ_VECTOR, brk=True)

# @intent:note RTIはRTSと異なり、取り出したアドレスに+1しない。
def rti(state: Mos6502CpuState, bus: Bus, addr_res: AddressingResult) -> None:
    state.p.load_byte(pull(state, bus))
    state.pc = pull_word(state, bus)
