# retro6502/debugger/debugger.py
"""
デバッガモジュール。

CPUへの入口は step_snapshot() のみで、1命令（または割り込み受付）ごとのSnapshotを
ブレークポイント条件と照合して連続実行を止めます。
書き込みの直前値はバスアクティビティに残るため、履歴を遡ってメモリも復元できます。
"""
import copy
import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from retro6502.core.cpu import AbstractCpu
from retro6502.core.snapshot import Snapshot
from retro6502.core.state import CpuState
from retro6502.transport.bus import BusAccessType

logger = logging.getLogger(__name__)

# レジスタマップ上の名前と状態オブジェクトの属性名の対応
_REGISTER_ATTRIBUTES = {"A": "a", "X": "x", "Y": "y", "S": "sp", "SP": "sp", "P": "status", "PC": "pc"}

def register_value(state: CpuState, name: str) -> Optional[int]:
    attr = _REGISTER_ATTRIBUTES.get(name.upper(), name.lower())
    return getattr(state, attr, None)

# @intent:responsibility ブレークポイントの条件タイプを定義します。
class BreakpointConditionType(Enum):
    PC_MATCH = "PC_MATCH"               # 次に実行する命令のアドレス
    MEMORY_READ = "MEMORY_READ"         # 直前の命令がアドレスを読んだ
    MEMORY_WRITE = "MEMORY_WRITE"       # 直前の命令がアドレスへ書いた
    REGISTER_VALUE = "REGISTER_VALUE"   # レジスタ (A, X, Y, S, P, PC) が値に一致
    REGISTER_CHANGE = "REGISTER_CHANGE" # レジスタの値が直前の命令で変化
    ILLEGAL_OPCODE = "ILLEGAL_OPCODE"   # ILLEGAL分類のオペコードを実行した

# @intent:responsibility ブレークポイントをトリガーする条件と、その照合ロジックを持ちます。
@dataclass(frozen=True)
class BreakpointCondition:
    """
    ブレークポイントの条件。

    PC_MATCH は命令の実行前に、それ以外は実行後のSnapshotに対して評価されます。
    register_name はレジスタマップの名前 ("A", "X", "Y", "S", "P", "PC") です。
    """
    condition_type: BreakpointConditionType
    value: Optional[int] = None
    address: Optional[int] = None
    register_name: Optional[str] = None
    enabled: bool = True

    def matches_pc(self, pc: int) -> bool:
        return self.enabled and self.condition_type is BreakpointConditionType.PC_MATCH and self.value == pc

    # @intent:responsibility 実行後のSnapshotが条件を満たすかを判定します。
    def matches(self, snapshot: Snapshot, previous_state: CpuState) -> bool:
        if not self.enabled:
            return False
        kind = self.condition_type
        if kind is BreakpointConditionType.MEMORY_READ:
            return any(access.access_type == BusAccessType.READ and access.address == self.address
                       for access in snapshot.bus_activity)
        if kind is BreakpointConditionType.MEMORY_WRITE:
            return self.address in snapshot.written_addresses()
        if kind is BreakpointConditionType.ILLEGAL_OPCODE:
            return snapshot.fault is not None
        if self.register_name is None:
            return False
        current = register_value(snapshot.state, self.register_name)
        if kind is BreakpointConditionType.REGISTER_VALUE:
            return current is not None and current == self.value
        if kind is BreakpointConditionType.REGISTER_CHANGE:
            return current != register_value(previous_state, self.register_name)
        return False

# @intent:responsibility CPUの実行制御、ブレークポイント管理、実行履歴の保持を行います。
class Debugger:
    def __init__(self, cpu: AbstractCpu, history_limit: Optional[int] = None):
        self._cpu = cpu
        self._breakpoints: List[BreakpointCondition] = []
        self._running = False
        self._last_snapshot: Optional[Snapshot] = None
        self._last_hit: Optional[BreakpointCondition] = None
        self._previous_state: CpuState = copy.deepcopy(cpu.get_state())
        self._history: List[Snapshot] = []
        self._history_limit = history_limit
        # 履歴を全て遡った時に戻る状態
        self._base_state: CpuState = copy.deepcopy(cpu.get_state())
        self._base_cycles = cpu.total_cycles
        self._base_halted = cpu.is_halted

    @property
    def is_running(self) -> bool:
        return self._running

    # @intent:return 直前の run() を止めたブレークポイント。ヒットしなかった場合はNone。
    @property
    def last_hit(self) -> Optional[BreakpointCondition]:
        return self._last_hit

    def add_breakpoint(self, condition: BreakpointCondition) -> None:
        if condition not in self._breakpoints:
            self._breakpoints.append(condition)

    # 並び順を保ったまま置き換える。旧条件が無ければ何もしない
    def update_breakpoint(self, old: BreakpointCondition, new: BreakpointCondition) -> None:
        if old in self._breakpoints:
            self._breakpoints[self._breakpoints.index(old)] = new

    def remove_breakpoint(self, condition: BreakpointCondition) -> None:
        if condition in self._breakpoints:
            self._breakpoints.remove(condition)

    def get_breakpoints(self) -> List[BreakpointCondition]:
        return list(self._breakpoints)

    def get_history(self) -> List[Snapshot]:
        return list(self._history)

    def get_last_snapshot(self) -> Optional[Snapshot]:
        return self._last_snapshot

    def step_instruction(self) -> Snapshot:
        """
        CPUを1命令進め、Snapshotを履歴に追加して返します。
        history_limit を超えた古い履歴は捨て、その時点の状態が遡れる限界になります。
        """
        self._previous_state = copy.deepcopy(self._cpu.get_state())
        snapshot = self._cpu.step_snapshot()
        self._last_snapshot = snapshot
        self._history.append(snapshot)

        if self._history_limit is not None and len(self._history) > self._history_limit:
            dropped = self._history.pop(0)
            self._base_state = copy.deepcopy(dropped.state)
            self._base_cycles = dropped.metadata.cycle_count
            self._base_halted = dropped.halted
        return snapshot

    # @intent:responsibility 直前の1命令を取り消します。
    # @intent:note メモリはバスアクティビティの previous_data から書き戻し、レジスタ・累計サイクル数・停止状態は1つ前のSnapshotから復元する。
    def step_back(self) -> Optional[Snapshot]:
        if not self._history:
            return None

        undone = self._history.pop()
        bus = self._cpu.bus
        for access in reversed(undone.bus_activity):
            if access.access_type is BusAccessType.WRITE and access.previous_data is not None:
                bus.load(access.address, access.previous_data)

        self._last_snapshot = self._history[-1] if self._history else None
        if self._last_snapshot is not None:
            self._cpu.restore_state(self._last_snapshot.state, self._last_snapshot.metadata.cycle_count,
                                    self._last_snapshot.halted)
        else:
            self._cpu.restore_state(self._base_state, self._base_cycles, self._base_halted)
        return self._last_snapshot

    def _pc_breakpoint(self, pc: int) -> Optional[BreakpointCondition]:
        return next((bp for bp in self._breakpoints if bp.matches_pc(pc)), None)

    def _snapshot_breakpoint(self, snapshot: Snapshot) -> Optional[BreakpointCondition]:
        return next((bp for bp in self._breakpoints if bp.matches(snapshot, self._previous_state)), None)

    # @intent:responsibility ブレークポイントにヒットするか、CPUが停止するか、上限に達するまで実行を継続します。
    # @intent:return ブレークポイントで停止した場合はTrue。
    def run(self, max_steps: Optional[int] = None) -> bool:
        self._running = True
        self._last_hit = None
        steps = 0

        while self._running and (max_steps is None or steps < max_steps):
            if self._cpu.is_halted:
                logger.info("CPU halted at PC: $%04X", self._cpu.get_state().pc)
                break

            pc = self._cpu.get_state().pc
            # 最初の1命令は現在のPCのブレークポイントを照合しない (停止位置からの再開)
            hit = self._pc_breakpoint(pc) if steps else None
            if hit is None:
                snapshot = self.step_instruction()
                steps += 1
                hit = self._snapshot_breakpoint(snapshot)
                pc = snapshot.state.pc
            if hit is not None:
                logger.info("Breakpoint hit at PC: $%04X (%s)", pc, hit.condition_type.value)
                self._last_hit = hit
                self._running = False
                return True

        self._running = False
        return False

    # @intent:responsibility 実行中の run() を次の命令境界で止めます。
    def stop(self) -> None:
        self._running = False
