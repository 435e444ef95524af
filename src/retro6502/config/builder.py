# retro6502/config/builder.py
import logging
from typing import Tuple

from retro6502.transport.bus import Bus, RAM, ROM
from retro6502.arch.mos6502.cpu import Mos6502Cpu, IllegalOpcodePolicy, set_reset_vector
from retro6502.loader.loader import load_program
from .models import SystemConfig, CpuInitialState

logger = logging.getLogger(__name__)

# @intent:responsibility システム構成（Config）に基づいて、Bus、Device、CPUを生成・接続し、初期状態を適用します。
class SystemBuilder:
    def build_system(self, config: SystemConfig) -> Tuple[Mos6502Cpu, Bus]:
        bus = Bus()

        for region in config.memory_map:
            device = ROM(region.size) if region.type == "ROM" else RAM(region.size)
            bus.register_device(region.start, region.end, device)
            logger.debug("Mapped %s %s at $%04X-$%04X", region.type, region.label, region.start, region.end)

        for image in config.images:
            load_program(image.path, bus, image.offset)

        if config.reset_vector is not None:
            set_reset_vector(bus, config.reset_vector)

        cpu = Mos6502Cpu(bus, IllegalOpcodePolicy(config.illegal_opcodes))
        cpu.set_symbol_map(config.symbols)
        self.apply_initial_state(cpu, config.initial_state)
        return cpu, bus

    # @intent:responsibility CPUをリセットし、Configから指定された初期値を適用します。
    def apply_initial_state(self, cpu: Mos6502Cpu, config_state: CpuInitialState) -> None:
        cpu.reset()
        if config_state.use_reset_vector and config_state.sp is None and not config_state.registers:
            return

        state = cpu.get_state()
        if not config_state.use_reset_vector and config_state.pc is not None:
            state.pc = config_state.pc
        if config_state.sp is not None:
            state.sp = config_state.sp
        for reg_name, value in config_state.registers.items():
            setattr(state, reg_name, value)
