# src/retro6502/arch/mos6502/cpu.py
"""
MOS 6502 CPUエミュレーションの中心モジュール。

リセット、命令の実行、IRQ/NMIの受付、未定義オペコードの扱いを担当する。
命令ごとの振る舞いは instructions パッケージの命令テーブルに委譲する。
"""
import logging
from enum import Enum
from typing import Dict, List, Optional, Tuple

from retro6502.core.cpu import AbstractCpu
from retro6502.core.snapshot import Operation, Snapshot, IllegalOpcodeFault
from retro6502.common.types import RegisterLayoutInfo, RegisterInfo
from retro6502.transport.bus import Bus
from retro6502.arch.mos6502.state import Mos6502CpuState
from retro6502.arch.mos6502.instructions.base import AddressingResult
from retro6502.arch.mos6502.instructions.control import NMI_VECTOR, RESET_VECTOR, IRQ_VECTOR, interrupt
from retro6502.arch.mos6502.instructions.maps import (
    Instruction, OpcodeKind, lookup, decode_opcode, execute_instruction,
)
from retro6502.arch.mos6502 import disassembler

logger = logging.getLogger(__name__)

RESET_CYCLES = 7
INTERRUPT_CYCLES = 7

# @intent:responsibility ILLEGALに分類されたオペコードに遭遇した際の方針。
class IllegalOpcodePolicy(Enum):
    HALT = "halt" # PCをオペコード上に留めたまま停止する (実機のJAMに近い)
    NOP = "nop" # 命令長とサイクル数だけ消費するNOPとして扱う

# @intent:responsibility リセットベクタ ($FFFC/$FFFD) に開始アドレスを書き込む。ローダーやテスト用。
def set_reset_vector(bus: Bus, address: int) -> None:
    bus.load(RESET_VECTOR, address & 0xFF)
    bus.load(RESET_VECTOR + 1, (address >> 8) & 0xFF)

# @intent:responsibility MOS 6502 CPUの具体的なエミュレーションロジックを提供する。
class Mos6502Cpu(AbstractCpu):
    """
    MOS 6502 (NMOS) CPUをエミュレートするクラス。

    生成直後のPCは0であり、reset() を呼ぶことでリセットベクタから実行を開始する。
    """
    def __init__(self, bus: Bus, illegal_opcode_policy: IllegalOpcodePolicy = IllegalOpcodePolicy.HALT):
        super().__init__(bus)
        self._illegal_opcode_policy = illegal_opcode_policy
        self._halted = False
        self._irq_line = False
        self._nmi_pending = False
        self._fault: Optional[IllegalOpcodeFault] = None
        # デコード時に解決した命令とオペランドを実行フェーズまで保持する
        self._decoded: Optional[Tuple[Instruction, AddressingResult]] = None

    @property
    def illegal_opcode_policy(self) -> IllegalOpcodePolicy:
        return self._illegal_opcode_policy

    @illegal_opcode_policy.setter
    def illegal_opcode_policy(self, policy: IllegalOpcodePolicy) -> None:
        self._illegal_opcode_policy = policy

    @property
    def is_halted(self) -> bool:
        return self._halted

    @property
    def irq_asserted(self) -> bool:
        return self._irq_line

    def _create_initial_state(self) -> Mos6502CpuState:
        return Mos6502CpuState()

    # @intent:responsibility ハードウェアリセット。
    # @intent:note A, X, Y と I 以外のフラグは実機同様に保持される。SP = $FF, I = 1, PC = リセットベクタ。
    def reset(self) -> None:
        state = self._state
        state.sp = 0xFF
        state.update_flags(i=True)
        state.pc = self._bus.read_word(RESET_VECTOR)
        self._bus.get_and_clear_activity_log()

        self._halted = False
        self._irq_line = False
        self._nmi_pending = False
        self._fault = None
        self._decoded = None
        self._cycle_count = RESET_CYCLES
        logger.debug("Reset: PC=$%04X", state.pc)

    # @intent:responsibility IRQラインの状態を設定する（レベルトリガ）。
    # @intent:note Iフラグが立っている間は保留され、クリアされた後の命令境界で受け付けられる。
    def set_irq(self, asserted: bool = True) -> None:
        self._irq_line = asserted

    # @intent:responsibility NMIを要求する（エッジトリガ）。次の命令境界で必ず受け付けられる。
    def trigger_nmi(self) -> None:
        self._nmi_pending = True

    # @intent:responsibility JAM等で停止している場合、状態を変えずにその旨のSnapshotを返す。
    def _handle_halt(self, current_pc: int) -> Optional[Snapshot]:
        if not self._halted:
            return None
        opcode = self._bus.peek(current_pc)
        operation = Operation(opcode_hex=f"{opcode:02X}", mnemonic="JAM (halted)", cycle_count=0, length=0)
        return self._create_snapshot(current_pc, operation, 0)

    # @intent:responsibility 命令境界で保留中の割り込みを受け付ける。NMIが優先。
    # @intent:note BRKと同じシーケンスだが、戻りアドレスは現在のPCそのもので、Bビットは0で積まれる。
    def _handle_interrupt(self, current_pc: int) -> Optional[Snapshot]:
        if self._nmi_pending:
            self._nmi_pending = False
            name, vector = "NMI", NMI_VECTOR
        elif self._irq_line and not self._state.flag_i:
            name, vector = "IRQ", IRQ_VECTOR
        else:
            return None

        interrupt(self._state, self._bus, current_pc, vector, brk=False)
        logger.debug("%s serviced at $%04X -> $%04X", name, current_pc, self._state.pc)
        operation = Operation(opcode_hex="--", mnemonic=name, cycle_count=INTERRUPT_CYCLES, length=0)
        return self._create_snapshot(current_pc, operation, INTERRUPT_CYCLES)

    # @intent:responsibility 命令フェッチ。PCは進めない。
    def _fetch(self) -> int:
        return self._bus.read(self._state.pc)

    # @intent:responsibility 命令デコード。オペランドの解決もここで一度だけ行う。
    # @intent:note HALT方針のILLEGAL命令はオペランドを解決しない。停止したCPUはオペコード以外を読まない。
    def _decode(self, opcode: int) -> Operation:
        instr = lookup(opcode)
        if instr.kind is OpcodeKind.ILLEGAL and self._illegal_opcode_policy is IllegalOpcodePolicy.HALT:
            operation, addr_res = self._describe_halting(instr)
        else:
            operation, addr_res = decode_opcode(opcode, self._bus, self._state.pc, self._state)
        self._decoded = (instr, addr_res)
        return operation

    def _describe_halting(self, instr: Instruction) -> Tuple[Operation, AddressingResult]:
        pc = self._state.pc
        operand_bytes = [self._bus.peek((pc + i) & 0xFFFF) for i in range(1, instr.length)]
        text = disassembler.format_operand(instr.mode, pc, operand_bytes)
        operation = Operation(
            opcode_hex=f"{instr.opcode:02X}",
            mnemonic=instr.mnemonic,
            operands=[text] if text else [],
            operand_bytes=operand_bytes,
            cycle_count=instr.cycles,
            length=instr.length,
        )
        return operation, AddressingResult(None, None, False, text, operand_bytes)

    # @intent:responsibility HALT方針のILLEGAL命令ではPCをオペコード上に留める。
    def _update_pc(self, operation: Operation) -> None:
        instr, _ = self._decoded
        if instr.kind is OpcodeKind.ILLEGAL and self._illegal_opcode_policy is IllegalOpcodePolicy.HALT:
            return
        super()._update_pc(operation)

    # @intent:responsibility 命令実行。分岐成立などで発生した追加サイクル数を返す。
    def _execute(self, operation: Operation) -> int:
        instr, addr_res = self._decoded
        self._decoded = None

        if instr.kind is OpcodeKind.ILLEGAL:
            self._report_illegal(instr)
            return 0
        return execute_instruction(instr, self._state, self._bus, addr_res)

    def _report_illegal(self, instr: Instruction) -> None:
        halt = self._illegal_opcode_policy is IllegalOpcodePolicy.HALT
        address = self._state.pc if halt else (self._state.pc - instr.length) & 0xFFFF
        self._halted = halt
        self._fault = IllegalOpcodeFault(address=address, opcode=instr.opcode,
                                         mnemonic=instr.mnemonic, halted=halt)
        logger.warning("Illegal opcode $%02X (%s) at $%04X: %s",
                       instr.opcode, instr.mnemonic, address, "halted" if halt else "treated as NOP")

    def _take_fault(self) -> Optional[IllegalOpcodeFault]:
        fault, self._fault = self._fault, None
        return fault

    # @intent:note 停止状態も渡された値に戻す。保留中の割り込み要求はそのまま残る。
    def restore_state(self, state: Mos6502CpuState, total_cycles: Optional[int] = None, halted: bool = False) -> None:
        super().restore_state(state, total_cycles, halted)
        self._halted = halted
        self._fault = None
        self._decoded = None

    # @intent:responsibility レジスタマップ（トレース表示用）を返す。SはスタックページのSPオフセット。
    def get_register_map(self) -> Dict[str, int]:
        state = self._state
        return {
            "A": state.a,
            "X": state.x,
            "Y": state.y,
            "PC": state.pc,
            "S": state.sp,
            "P": state.status,
        }

    def get_flag_state(self) -> Dict[str, bool]:
        state = self._state
        return {
            "N": state.flag_n,
            "V": state.flag_v,
            "B": state.flag_b,
            "D": state.flag_d,
            "I": state.flag_i,
            "Z": state.flag_z,
            "C": state.flag_c,
        }

    def get_register_layout(self) -> List[RegisterLayoutInfo]:
        return [
            RegisterLayoutInfo("Registers", [
                RegisterInfo("A", 8),
                RegisterInfo("X", 8),
                RegisterInfo("Y", 8),
                RegisterInfo("P", 8),
            ]),
            RegisterLayoutInfo("Pointers", [
                RegisterInfo("PC", 16),
                RegisterInfo("S", 8),
            ]),
        ]

    # @intent:responsibility 指定範囲の逆アセンブル結果を返す。
    def disassemble(self, start_addr: int, length: int) -> List[Tuple[int, str, str]]:
        return disassembler.disassemble(self._bus, start_addr, length)
