# tests/debugger/test_debugger.py
"""
retro6502.debugger.debuggerモジュールの単体テスト。
Debuggerの実行制御、ブレークポイント管理、ステップバックを検証します。
"""
import logging

import pytest

from retro6502.transport.bus import Bus, BusAccessType
from retro6502.arch.mos6502.cpu import Mos6502Cpu, IllegalOpcodePolicy, set_reset_vector
from retro6502.core.snapshot import Snapshot
from retro6502.debugger.debugger import Debugger, BreakpointCondition, BreakpointConditionType, register_value

# @intent:test_suite デバッガのブレークポイントと実行制御機能の検証。

def make_debugger(program, memory=None, history_limit=None):
    bus = Bus()
    bus.load_image(0x0400, program)
    for addr, value in (memory or {}).items():
        bus.load(addr, value)
    set_reset_vector(bus, 0x0400)
    cpu = Mos6502Cpu(bus)
    cpu.reset()
    return Debugger(cpu, history_limit=history_limit), cpu, bus


class TestBreakpointManagement:
    # @intent:test_case_add_remove_breakpoint ブレークポイントの追加と削除が正しく行われることを検証します。
    def test_add_remove_breakpoint(self):
        debugger, _, _ = make_debugger([0xEA])
        bp1 = BreakpointCondition(BreakpointConditionType.PC_MATCH, value=0x1000)
        bp2 = BreakpointCondition(BreakpointConditionType.MEMORY_WRITE, address=0x2000)

        debugger.add_breakpoint(bp1)
        debugger.add_breakpoint(bp2)
        debugger.add_breakpoint(bp1) # 重複追加は無視される
        assert debugger.get_breakpoints() == [bp1, bp2]

        debugger.remove_breakpoint(bp1)
        debugger.remove_breakpoint(bp1) # 存在しないブレークポイントの削除はエラーにならない
        assert debugger.get_breakpoints() == [bp2]

    def test_update_breakpoint_keeps_position(self):
        debugger, _, _ = make_debugger([0xEA])
        bp1 = BreakpointCondition(BreakpointConditionType.PC_MATCH, value=0x0401)
        bp2 = BreakpointCondition(BreakpointConditionType.PC_MATCH, value=0x0402)
        debugger.add_breakpoint(bp1)
        debugger.add_breakpoint(bp2)

        disabled = BreakpointCondition(BreakpointConditionType.PC_MATCH, value=0x0401, enabled=False)
        debugger.update_breakpoint(bp1, disabled)
        assert debugger.get_breakpoints() == [disabled, bp2]


class TestStepping:
    # @intent:test_case_step_instruction step_instructionが1命令を実行し、Snapshotを履歴へ追加することを検証します。
    def test_step_instruction(self):
        debugger, cpu, _ = make_debugger([0xA9, 0x42])
        snapshot = debugger.step_instruction()

        assert isinstance(snapshot, Snapshot)
        assert snapshot.operation.mnemonic == "LDA"
        assert snapshot.state.a == 0x42
        assert debugger.get_last_snapshot() is snapshot
        assert debugger.get_history() == [snapshot]

    def test_history_limit(self):
        debugger, _, _ = make_debugger([0xEA, 0xEA, 0xEA], history_limit=2)
        for _ in range(3):
            debugger.step_instruction()
        history = debugger.get_history()
        assert len(history) == 2
        assert history[-1].state.pc == 0x0403

    # @intent:test_case_step_back ステップバックでレジスタとメモリの両方が元に戻ることを検証します。
    def test_step_back_restores_memory_and_registers(self):
        debugger, cpu, bus = make_debugger([0xA9, 0x01, 0x85, 0x10], memory={0x0010: 0x55})
        debugger.step_instruction()
        debugger.step_instruction()
        assert bus.peek(0x0010) == 0x01

        previous = debugger.step_back()
        assert bus.peek(0x0010) == 0x55
        assert previous.state.pc == 0x0402
        assert cpu.get_state().pc == 0x0402
        assert cpu.get_state().a == 0x01

        assert debugger.step_back() is None
        assert cpu.get_state().pc == 0x0400
        assert cpu.get_state().a == 0x00
        assert debugger.get_last_snapshot() is None

    def test_step_back_restores_stack(self):
        debugger, cpu, bus = make_debugger([0xA9, 0x7E, 0x48])
        debugger.step_instruction()
        debugger.step_instruction()
        assert bus.peek(0x01FF) == 0x7E

        debugger.step_back()
        assert bus.peek(0x01FF) == 0x00
        assert cpu.get_state().sp == 0xFF

    def test_step_back_with_empty_history(self):
        debugger, _, _ = make_debugger([0xEA])
        assert debugger.step_back() is None

    # @intent:test_case_step_back_jam JAMで停止した命令を取り消すと停止状態も解除され、修正後に実行を再開できることを検証します。
    def test_step_back_out_of_jam(self):
        debugger, cpu, bus = make_debugger([0xEA, 0x02, 0xEA])
        debugger.step_instruction()
        assert debugger.step_instruction().halted
        assert cpu.is_halted

        debugger.step_back()
        assert not cpu.is_halted
        assert cpu.get_state().pc == 0x0401

        bus.load(0x0401, 0xEA)
        snapshot = debugger.step_instruction()
        assert snapshot.operation.mnemonic == "NOP"
        assert snapshot.fault is None
        assert cpu.get_state().pc == 0x0402

    def test_step_back_into_halted_snapshot_keeps_cpu_halted(self):
        debugger, cpu, _ = make_debugger([0x02])
        debugger.step_instruction()
        debugger.step_instruction()
        assert debugger.get_last_snapshot().operation.mnemonic == "JAM (halted)"

        debugger.step_back()
        assert cpu.is_halted

    # @intent:test_case_step_back_cycles ステップバックで累計サイクル数も巻き戻ることを検証します。
    def test_step_back_rewinds_cycle_count(self):
        debugger, cpu, _ = make_debugger([0xA9, 0x01, 0x85, 0x10])
        debugger.step_instruction()
        debugger.step_instruction()
        assert cpu.total_cycles == 12

        debugger.step_back()
        assert cpu.total_cycles == 9
        debugger.step_back()
        assert cpu.total_cycles == 7

        debugger.step_instruction()
        assert debugger.step_instruction().metadata.cycle_count == 12

    def test_step_back_stops_at_oldest_kept_instruction(self):
        debugger, cpu, _ = make_debugger([0xEA, 0xEA, 0xEA], history_limit=2)
        for _ in range(3):
            debugger.step_instruction()

        debugger.step_back()
        assert debugger.step_back() is None
        assert cpu.get_state().pc == 0x0401
        assert cpu.total_cycles == 9
        assert debugger.step_back() is None
        assert cpu.get_state().pc == 0x0401


class TestRun:
    # @intent:test_case_pc_match_breakpoint PC_MATCHブレークポイントで命令実行前に停止することを検証します。
    def test_pc_match_breakpoint(self, caplog):
        debugger, cpu, _ = make_debugger([0xEA, 0xEA, 0xEA, 0xEA])
        debugger.add_breakpoint(BreakpointCondition(BreakpointConditionType.PC_MATCH, value=0x0402))

        with caplog.at_level(logging.INFO, logger="retro6502.debugger.debugger"):
            assert debugger.run(max_steps=10)

        assert cpu.get_state().pc == 0x0402
        assert not debugger.is_running
        assert "Breakpoint hit at PC: $0402" in caplog.text

    def test_run_resumes_past_current_breakpoint(self):
        debugger, cpu, _ = make_debugger([0xEA, 0xEA, 0xEA, 0x02])
        debugger.add_breakpoint(BreakpointCondition(BreakpointConditionType.PC_MATCH, value=0x0401))
        assert debugger.run()
        # 停止したCPUで実行を終える
        assert not debugger.run()
        assert cpu.is_halted
        assert cpu.get_state().pc == 0x0403

    def test_disabled_breakpoint_is_ignored(self):
        debugger, cpu, _ = make_debugger([0xEA, 0xEA, 0x02])
        debugger.add_breakpoint(BreakpointCondition(BreakpointConditionType.PC_MATCH, value=0x0401, enabled=False))
        assert not debugger.run()
        assert cpu.get_state().pc == 0x0402

    # @intent:test_case_memory_write_breakpoint MEMORY_WRITEブレークポイントが書き込み直後にヒットすることを検証します。
    def test_memory_write_breakpoint(self):
        debugger, cpu, _ = make_debugger([0xA9, 0xAA, 0x8D, 0x00, 0x20, 0xEA])
        debugger.add_breakpoint(BreakpointCondition(BreakpointConditionType.MEMORY_WRITE, address=0x2000))

        assert debugger.run(max_steps=10)
        snapshot = debugger.get_last_snapshot()
        assert snapshot.operation.mnemonic == "STA"
        assert snapshot.written_addresses() == [0x2000]
        assert cpu.get_state().pc == 0x0405

    # @intent:test_case_memory_read_breakpoint MEMORY_READブレークポイントが読み込み直後にヒットすることを検証します。
    def test_memory_read_breakpoint(self):
        debugger, cpu, _ = make_debugger([0xEA, 0xAD, 0x00, 0x30, 0xEA], memory={0x3000: 0xDE})
        debugger.add_breakpoint(BreakpointCondition(BreakpointConditionType.MEMORY_READ, address=0x3000))

        assert debugger.run(max_steps=10)
        snapshot = debugger.get_last_snapshot()
        assert any(a.access_type == BusAccessType.READ and a.address == 0x3000 and a.data == 0xDE
                   for a in snapshot.bus_activity)
        assert cpu.get_state().a == 0xDE

    # @intent:test_case_register_value_breakpoint REGISTER_VALUEブレークポイントがヒットすることを検証します。
    def test_register_value_breakpoint(self):
        debugger, cpu, _ = make_debugger([0xE8] * 5)
        debugger.add_breakpoint(BreakpointCondition(BreakpointConditionType.REGISTER_VALUE,
                                                    register_name="X", value=3))
        assert debugger.run(max_steps=10)
        assert cpu.get_state().x == 3
        assert cpu.get_state().pc == 0x0403

    # @intent:test_case_register_change_breakpoint REGISTER_CHANGEブレークポイントが値の変化でヒットすることを検証します。
    def test_register_change_breakpoint(self):
        debugger, cpu, _ = make_debugger([0xEA, 0xEA, 0xC8, 0xEA])
        debugger.add_breakpoint(BreakpointCondition(BreakpointConditionType.REGISTER_CHANGE, register_name="y"))
        assert debugger.run(max_steps=10)
        assert cpu.get_state().y == 1
        assert debugger.get_last_snapshot().operation.mnemonic == "INY"

    def test_max_steps(self):
        debugger, cpu, _ = make_debugger([0xEA] * 10)
        assert not debugger.run(max_steps=4)
        assert cpu.get_state().pc == 0x0404
        assert len(debugger.get_history()) == 4

    def test_run_stops_when_cpu_halts(self, caplog):
        debugger, cpu, _ = make_debugger([0xEA, 0x02])
        with caplog.at_level(logging.INFO, logger="retro6502.debugger.debugger"):
            assert not debugger.run()
        assert cpu.is_halted
        assert "CPU halted at PC: $0401" in caplog.text
        assert debugger.get_last_snapshot().fault is not None

    # @intent:test_case_illegal_opcode_breakpoint NOP方針で実行を続けるCPUでも、ILLEGAL命令で停止できることを検証します。
    def test_illegal_opcode_breakpoint(self):
        debugger, cpu, _ = make_debugger([0xEA, 0x02, 0xEA])
        cpu.illegal_opcode_policy = IllegalOpcodePolicy.NOP
        bp = BreakpointCondition(BreakpointConditionType.ILLEGAL_OPCODE)
        debugger.add_breakpoint(bp)

        assert debugger.run(max_steps=10)
        assert debugger.last_hit == bp
        assert cpu.get_state().pc == 0x0402
        assert not cpu.is_halted

    def test_stack_pointer_by_register_map_name(self):
        debugger, cpu, _ = make_debugger([0x48, 0x48, 0x48])
        debugger.add_breakpoint(BreakpointCondition(BreakpointConditionType.REGISTER_VALUE,
                                                    register_name="S", value=0xFD))
        assert debugger.run(max_steps=10)
        assert cpu.get_state().pc == 0x0402

    def test_last_hit_cleared_on_next_run(self):
        debugger, _, _ = make_debugger([0xEA, 0xEA, 0x02])
        bp = BreakpointCondition(BreakpointConditionType.PC_MATCH, value=0x0401)
        debugger.add_breakpoint(bp)
        assert debugger.run()
        assert debugger.last_hit == bp
        assert not debugger.run()
        assert debugger.last_hit is None


class TestRegisterValue:
    @pytest.mark.parametrize("name,expected", [("A", 0x11), ("x", 0x22), ("S", 0xFF), ("SP", 0xFF),
                                               ("P", 0x24), ("PC", 0x0400), ("Q", None)])
    def test_register_value(self, name, expected):
        _, cpu, _ = make_debugger([0xEA])
        state = cpu.get_state()
        state.a, state.x = 0x11, 0x22
        assert register_value(state, name) == expected
