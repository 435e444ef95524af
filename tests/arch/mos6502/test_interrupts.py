# tests/arch/mos6502/test_interrupts.py
"""
MOS 6502 のIRQ/NMI受付のテスト。
"""
import pytest

from retro6502.transport.bus import Bus
from retro6502.arch.mos6502.cpu import Mos6502Cpu, set_reset_vector

# @intent:test_suite 割り込みは命令境界でのみ受け付けられ、NMIが優先されることを検証します。

NMI_HANDLER = 0x0500
IRQ_HANDLER = 0x0600

@pytest.fixture
def system():
    bus = Bus()
    # CLI; NOP; NOP; NOP
    bus.load_image(0x0400, [0x58, 0xEA, 0xEA, 0xEA])
    bus.load_image(NMI_HANDLER, [0xEA, 0x40])  # NOP; RTI
    bus.load_image(IRQ_HANDLER, [0x40])        # RTI
    bus.load_image(0xFFFA, [NMI_HANDLER & 0xFF, NMI_HANDLER >> 8])
    bus.load_image(0xFFFE, [IRQ_HANDLER & 0xFF, IRQ_HANDLER >> 8])
    set_reset_vector(bus, 0x0400)
    cpu = Mos6502Cpu(bus)
    cpu.reset()
    return cpu, bus


class TestIrq:
    # @intent:test_case_irq_masked Iフラグが立っている間はIRQが保留されることを検証します。
    def test_irq_ignored_while_interrupts_disabled(self, system):
        cpu, _ = system
        cpu.set_irq(True)
        snapshot = cpu.step_snapshot()
        assert snapshot.operation.mnemonic == "CLI"
        assert cpu.get_state().pc == 0x0401

    # @intent:test_case_irq_service IRQ受付時にPCとBクリアのステータスが積まれ、ベクタへ飛ぶことを検証します。
    def test_irq_serviced_after_cli(self, system):
        cpu, bus = system
        cpu.set_irq(True)
        cpu.step()  # CLI
        snapshot = cpu.step_snapshot()

        state = cpu.get_state()
        assert snapshot.operation.mnemonic == "IRQ"
        assert snapshot.operation.opcode_hex == "--"
        assert snapshot.metadata.instruction_cycles == 7
        assert state.pc == IRQ_HANDLER
        assert state.flag_i
        assert state.sp == 0xFC
        assert bus.peek(0x01FF) == 0x04
        assert bus.peek(0x01FE) == 0x01
        pushed_status = bus.peek(0x01FD)
        assert pushed_status & 0x10 == 0
        assert pushed_status & 0x20
        assert pushed_status & 0x04 == 0

    # @intent:test_case_irq_level IRQはレベルトリガであり、ラインが下がるまで繰り返し受け付けられることを検証します。
    def test_irq_is_level_triggered(self, system):
        cpu, _ = system
        cpu.set_irq(True)
        cpu.step()  # CLI
        assert cpu.step_snapshot().operation.mnemonic == "IRQ"
        assert cpu.step_snapshot().operation.mnemonic == "RTI"
        assert cpu.step_snapshot().operation.mnemonic == "IRQ"

        cpu.step()  # RTI
        cpu.set_irq(False)
        snapshot = cpu.step_snapshot()
        assert snapshot.operation.mnemonic == "NOP"
        assert snapshot.state.pc == 0x0402
        assert not cpu.irq_asserted

    def test_rti_returns_to_interrupted_instruction(self, system):
        cpu, _ = system
        cpu.set_irq(True)
        cpu.step()  # CLI
        cpu.step()  # IRQ
        cpu.set_irq(False)
        cpu.step()  # RTI
        state = cpu.get_state()
        assert state.pc == 0x0401
        assert not state.flag_i
        assert state.sp == 0xFF


class TestNmi:
    # @intent:test_case_nmi NMIはIフラグに関係なく受け付けられることを検証します。
    def test_nmi_ignores_interrupt_disable(self, system):
        cpu, bus = system
        assert cpu.get_state().flag_i
        cpu.trigger_nmi()
        snapshot = cpu.step_snapshot()

        assert snapshot.operation.mnemonic == "NMI"
        assert snapshot.metadata.instruction_cycles == 7
        assert cpu.get_state().pc == NMI_HANDLER
        assert bus.peek(0x01FD) & 0x10 == 0
        assert cpu.total_cycles == 14

    # @intent:test_case_nmi_edge NMIはエッジトリガであり、1回の要求で1回だけ受け付けられることを検証します。
    def test_nmi_serviced_once(self, system):
        cpu, _ = system
        cpu.trigger_nmi()
        cpu.step()
        snapshot = cpu.step_snapshot()
        assert snapshot.operation.mnemonic == "NOP"
        assert cpu.get_state().pc == NMI_HANDLER + 1

    def test_nmi_has_priority_over_irq(self, system):
        cpu, _ = system
        cpu.step()  # CLI
        cpu.set_irq(True)
        cpu.trigger_nmi()
        assert cpu.step_snapshot().operation.mnemonic == "NMI"
        # NMIハンドラ内はIがセットされているため、IRQは保留される
        assert cpu.step_snapshot().operation.mnemonic == "NOP"
        assert cpu.step_snapshot().operation.mnemonic == "RTI"
        assert cpu.step_snapshot().operation.mnemonic == "IRQ"

    def test_reset_clears_pending_interrupts(self, system):
        cpu, _ = system
        cpu.trigger_nmi()
        cpu.set_irq(True)
        cpu.reset()
        assert not cpu.irq_asserted
        assert cpu.step_snapshot().operation.mnemonic == "CLI"
        assert cpu.step_snapshot().operation.mnemonic == "NOP"


class TestHaltedCpu:
    # @intent:test_case_jam JAMで停止したCPUは割り込みでは再開せず、リセットが必要であることを検証します。
    def test_interrupts_do_not_wake_jammed_cpu(self):
        bus = Bus()
        bus.load_image(0x0400, [0x02])
        set_reset_vector(bus, 0x0400)
        cpu = Mos6502Cpu(bus)
        cpu.reset()
        cpu.step()
        assert cpu.is_halted

        cpu.trigger_nmi()
        snapshot = cpu.step_snapshot()
        assert snapshot.operation.mnemonic == "JAM (halted)"
        assert snapshot.metadata.instruction_cycles == 0
        assert cpu.get_state().pc == 0x0400

        cpu.reset()
        assert not cpu.is_halted
        assert cpu.get_state().pc == 0x0400
