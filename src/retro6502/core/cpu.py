# retro6502/core/cpu.py
"""
Core Layer (実行エンジンの骨格)

1命令の処理順序（停止判定 → 割り込み → フェッチ → デコード → PC更新 → 実行 → 記録）を
step_snapshot() に固定し、各段階をサブクラスのフックとして差し替えられるようにします。
命令の意味そのものは arch パッケージの命令テーブルが持ちます。
"""
import copy
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

from retro6502.transport.bus import Bus
from retro6502.core.snapshot import Snapshot, Operation, Metadata, IllegalOpcodeFault
from retro6502.core.state import CpuState
from retro6502.common.types import SymbolMap, RegisterLayoutInfo

# @intent:responsibility 命令サイクルの駆動、累計サイクル数、連続実行の制御を提供します。
class AbstractCpu(ABC):
    """
    バスを1本だけ持つCPUの基底クラス。

    状態 (CpuState) はCPUが所有し、get_state() は実行中のオブジェクトそのものを返します。
    Snapshotにはその時点のコピーが入ります。
    """
    def __init__(self, bus: Bus):
        self._bus = bus
        self._state: CpuState = self._create_initial_state()
        self._cycle_count = 0
        self._running = False
        self._symbol_map: SymbolMap = {}
        self._labels: Dict[int, str] = {}

    @property
    def bus(self) -> Bus:
        return self._bus

    # @intent:responsibility トレース表示用のラベル (名前 -> アドレス) を設定します。
    def set_symbol_map(self, symbol_map: SymbolMap) -> None:
        self._symbol_map = dict(symbol_map)
        self._labels = {address: label for label, address in symbol_map.items()}

    def get_symbol_map(self) -> SymbolMap:
        return dict(self._symbol_map)

    @abstractmethod
    def _create_initial_state(self) -> CpuState:
        pass

    def reset(self) -> None:
        self._state = self._create_initial_state()

    def get_state(self) -> CpuState:
        return self._state

    # @intent:responsibility デバッガのステップバック用。渡された状態のコピーを現在の状態にします。
    # @intent:note total_cycles を渡すと累計サイクル数も巻き戻す。halted は停止状態を持つサブクラスが使う。
    def restore_state(self, state: CpuState, total_cycles: Optional[int] = None, halted: bool = False) -> None:
        self._state = copy.deepcopy(state)
        if total_cycles is not None:
            self._cycle_count = total_cycles

    @property
    def total_cycles(self) -> int:
        return self._cycle_count

    # @intent:note JAM等で命令を進められない状態。基底クラスでは停止しない。
    @property
    def is_halted(self) -> bool:
        return False

    # @intent:responsibility PCの位置からオペコードを読みます。PCは動かしません。
    @abstractmethod
    def _fetch(self) -> int:
        pass

    @abstractmethod
    def _decode(self, opcode: int) -> Operation:
        pass

    # @intent:return 分岐成立など、実行して初めて分かる追加サイクル数。
    @abstractmethod
    def _execute(self, operation: Operation) -> int:
        pass

    # @intent:responsibility 1命令（または1回の割り込み受付）を進め、その結果をSnapshotとして返します。
    def step_snapshot(self) -> Snapshot:
        # 前の命令の後に行われたアクセス (ローダー、デバッガ等) は記録しない
        self._bus.get_and_clear_activity_log()
        start_pc = self._state.pc

        snapshot = self._handle_halt(start_pc)
        if snapshot is not None:
            return snapshot

        # 割り込みは命令の境界でのみ受け付ける
        snapshot = self._handle_interrupt(start_pc)
        if snapshot is not None:
            return snapshot

        operation = self._decode(self._fetch())
        self._update_pc(operation)
        extra_cycles = self._execute(operation)

        return self._create_snapshot(start_pc, operation, operation.cycle_count + extra_cycles,
                                     fault=self._take_fault())

    # @intent:return この命令で消費したサイクル数。
    def step(self) -> int:
        return self.step_snapshot().metadata.instruction_cycles

    # @intent:responsibility stop() が呼ばれるか、停止状態になるか、上限に達するまで命令を実行します。
    # @intent:return 消費したサイクル数の合計。
    def run(self, max_instructions: Optional[int] = None, max_cycles: Optional[int] = None) -> int:
        self._running = True
        executed = 0
        cycles = 0
        while self._running and not self.is_halted:
            if max_instructions is not None and executed >= max_instructions:
                break
            if max_cycles is not None and cycles >= max_cycles:
                break
            cycles += self.step()
            executed += 1
        self._running = False
        return cycles

    # デバイスのハンドラからも呼べる。次の命令境界で run() を抜ける
    def stop(self) -> None:
        self._running = False

    def _handle_halt(self, current_pc: int) -> Optional[Snapshot]:
        return None

    def _handle_interrupt(self, current_pc: int) -> Optional[Snapshot]:
        return None

    # @intent:return 直前の命令で発生した未定義オペコードの報告。取り出すと消える。
    def _take_fault(self) -> Optional[IllegalOpcodeFault]:
        return None

    # @intent:note PCは実行の前に命令長だけ進める。ハンドラから見えるPCは次の命令のアドレス。
    def _update_pc(self, operation: Operation) -> None:
        self._state.pc = (self._state.pc + operation.length) & 0xFFFF

    def _symbol_info(self, pc: int, operation: Operation) -> str:
        text = operation.mnemonic
        if operation.operands:
            text += " " + ", ".join(operation.operands)
        label = self._labels.get(pc)
        return f"{label}: {text}" if label else text

    def _create_snapshot(self, initial_pc: int, operation: Operation, cycles: int,
                         fault: Optional[IllegalOpcodeFault] = None) -> Snapshot:
        self._cycle_count += cycles
        return Snapshot(
            state=copy.deepcopy(self._state),
            operation=operation,
            metadata=Metadata(
                cycle_count=self._cycle_count,
                instruction_cycles=cycles,
                symbol_info=self._symbol_info(initial_pc, operation),
            ),
            bus_activity=self._bus.get_and_clear_activity_log(),
            fault=fault,
            halted=self.is_halted,
        )

    # @intent:responsibility トレース表示用のレジスタ名と値の対応を返します。
    @abstractmethod
    def get_register_map(self) -> Dict[str, int]:
        pass

    @abstractmethod
    def get_register_layout(self) -> List[RegisterLayoutInfo]:
        pass

    @abstractmethod
    def get_flag_state(self) -> Dict[str, bool]:
        pass

    # @intent:return (アドレス, HEXバイト列, ニーモニック) のリスト。
    @abstractmethod
    def disassemble(self, start_addr: int, length: int) -> List[Tuple[int, str, str]]:
        pass
