# tests/core/test_abstract_cpu.py
"""
retro6502.core.cpuモジュールの単体テスト。
"""
from typing import Dict, List, Tuple

from retro6502.core.state import CpuState
from retro6502.core.cpu import AbstractCpu
from retro6502.core.snapshot import Operation
from retro6502.transport.bus import Bus, BusAccessType
from retro6502.common.types import RegisterLayoutInfo, RegisterInfo

# @intent:test_suite 抽象CPUの命令サイクル（Template Method）と実行制御を検証します。

class CountingCpu(AbstractCpu):
    """
    オペコード $00 を1バイトのNOP、それ以外を2バイトの「$20へ書き込む」命令として扱うテスト用CPU。
    """
    def _create_initial_state(self) -> CpuState:
        return CpuState(pc=0x0000, sp=0x00)

    def _fetch(self) -> int:
        return self._bus.read(self._state.pc)

    def _decode(self, opcode: int) -> Operation:
        if opcode == 0x00:
            return Operation(opcode_hex="00", mnemonic="NOP", cycle_count=2, length=1)
        return Operation(opcode_hex=f"{opcode:02X}", mnemonic="POKE", operands=["$20"], cycle_count=3, length=2)

    def _execute(self, operation: Operation) -> int:
        if operation.mnemonic == "POKE":
            self._bus.write(0x0020, 0xFF)
            return 1
        return 0

    def get_register_map(self) -> Dict[str, int]:
        return {"PC": self._state.pc, "SP": self._state.sp}

    def get_register_layout(self) -> List[RegisterLayoutInfo]:
        return [RegisterLayoutInfo("Pointers", [RegisterInfo("PC", 16), RegisterInfo("SP", 8)])]

    def get_flag_state(self) -> Dict[str, bool]:
        return {}

    def disassemble(self, start_addr: int, length: int) -> List[Tuple[int, str, str]]:
        return []


class TestAbstractCpu:
    # @intent:test_case_step PCが命令長分進み、サイクル数が返されることを検証します。
    def test_step_advances_pc_and_counts_cycles(self):
        cpu = CountingCpu(Bus())
        assert cpu.step() == 2
        assert cpu.get_state().pc == 0x0001
        assert cpu.total_cycles == 2

    # @intent:test_case_snapshot Snapshotにバスアクティビティと実行時の追加サイクルが含まれることを検証します。
    def test_step_snapshot_records_activity(self):
        bus = Bus()
        bus.load(0x0000, 0x42)
        cpu = CountingCpu(bus)
        cpu.set_symbol_map({"start": 0x0000})

        snapshot = cpu.step_snapshot()

        assert snapshot.metadata.instruction_cycles == 4
        assert snapshot.metadata.symbol_info == "start: POKE $20"
        assert snapshot.state.pc == 0x0002
        assert [a.access_type for a in snapshot.bus_activity] == [BusAccessType.READ, BusAccessType.WRITE]
        assert snapshot.written_addresses() == [0x0020]

    # @intent:test_case_snapshot_copy Snapshotの状態はその後の実行で変化しないことを検証します。
    def test_snapshot_state_is_a_copy(self):
        cpu = CountingCpu(Bus())
        snapshot = cpu.step_snapshot()
        cpu.step()
        assert snapshot.state.pc == 0x0001
        assert cpu.get_state().pc == 0x0002

    # @intent:test_case_run 命令数・サイクル数の上限で連続実行が停止することを検証します。
    def test_run_limits(self):
        cpu = CountingCpu(Bus())
        assert cpu.run(max_instructions=5) == 10
        assert cpu.get_state().pc == 0x0005

        assert cpu.run(max_cycles=5) == 6
        assert cpu.get_state().pc == 0x0008

    # @intent:test_case_restore 保存した状態を復元できることを検証します。
    def test_restore_state(self):
        cpu = CountingCpu(Bus())
        saved = CpuState(pc=0x1234, sp=0x56)
        cpu.restore_state(saved)
        saved.pc = 0
        assert cpu.get_state().pc == 0x1234
