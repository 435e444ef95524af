# retro6502/cli/main.py
"""
retro6502 コマンドラインインターフェース。

    $ retro6502 run program.bin --offset 0x0400 --pause
    $ retro6502 run --config system.yaml --max-instructions 1000 --trace
    $ retro6502 disasm program.bin --offset 0x0400 --count 20

run は1命令ごとに「PC とニーモニック」の行を出力し、--pause 指定時は
Enterが押されるまで次の命令の実行を待つ。
"""
import logging
from pathlib import Path
from typing import Optional

import click

from retro6502.errors import Retro6502Error
from retro6502.transport.bus import Bus
from retro6502.core.snapshot import Snapshot
from retro6502.arch.mos6502.cpu import Mos6502Cpu, set_reset_vector
from retro6502.arch.mos6502.instructions.control import RESET_VECTOR
from retro6502.arch.mos6502.disassembler import disassemble
from retro6502.config.loader import ConfigLoader
from retro6502.config.builder import SystemBuilder
from retro6502.config.models import SystemConfig
from retro6502.loader.loader import load_program

logger = logging.getLogger(__name__)

# @intent:responsibility "0x1234", "$1234", "4660" のいずれの表記も16bitアドレスとして受け付ける。
class AddressType(click.ParamType):
    name = "address"

    def convert(self, value, param, ctx):
        if isinstance(value, int):
            result = value
        else:
            text = str(value).strip()
            try:
                if text.lower().startswith("0x"):
                    result = int(text, 16)
                elif text.startswith("$"):
                    result = int(text[1:], 16)
                else:
                    result = int(text)
            except ValueError:
                self.fail(f"'{value}' is not a valid address", param, ctx)
        if not 0 <= result <= 0xFFFF:
            self.fail(f"address must be 0-65535 (0x0000-0xFFFF), got {value}", param, ctx)
        return result

ADDRESS = AddressType()

def _configure_logging(verbose: int) -> None:
    level = logging.WARNING
    if verbose == 1:
        level = logging.INFO
    elif verbose >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

def _format_trace(pc: int, snapshot: Snapshot, detailed: bool) -> str:
    op = snapshot.operation
    text = op.mnemonic
    if op.operands:
        text += " " + ", ".join(op.operands)
    if not detailed:
        return f"\t${pc:04x}\t{text}"

    # symbol_info は構成ファイルの symbols で定義されたラベルを先頭に含む
    state = snapshot.state
    raw = " ".join([op.opcode_hex] + [f"{b:02X}" for b in op.operand_bytes])
    text = snapshot.metadata.symbol_info or text
    return (f"${pc:04X}  {raw:<8}  {text:<14}  "
            f"A={state.a:02X} X={state.x:02X} Y={state.y:02X} P={state.status:02X} SP={state.sp:02X}  "
            f"CYC={snapshot.metadata.cycle_count}")

# @intent:responsibility 実行終了時のレジスタとフラグの要約。桁数はCPUのレジスタ定義に従う。
def _format_registers(cpu: Mos6502Cpu) -> str:
    widths = {info.name: info.width for group in cpu.get_register_layout() for info in group.registers}
    regs = " ".join(f"{name}=${value:0{widths.get(name, 8) // 4}X}" for name, value in cpu.get_register_map().items())
    flags = "".join(name if value else "." for name, value in cpu.get_flag_state().items())
    return f"{regs}\nFlags {flags}"

@click.group()
@click.version_option(package_name="retro6502", prog_name="retro6502")
def cli() -> None:
    """MOS 6502 emulator and tracer."""

@cli.command()
@click.argument("image", required=False, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--offset", type=ADDRESS, default=0, help="Load address of a raw binary image (default: 0).")
@click.option("--reset-vector", type=ADDRESS, default=None,
              help="Write this address to $FFFC/$FFFD before reset (default: the load offset "
                   "when the image leaves the vector empty).")
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False, path_type=Path),
              default=None, help="YAML system description.")
@click.option("--trace", is_flag=True, help="Print registers and cycles on every trace line.")
@click.option("--pause", is_flag=True, help="Wait for Enter after every instruction.")
@click.option("--quiet", is_flag=True, help="Do not print a trace line per instruction.")
@click.option("--max-instructions", type=click.IntRange(min=0), default=None,
              help="Stop after this many instructions.")
@click.option("--illegal-opcodes", type=click.Choice(["halt", "nop"]), default=None,
              help="How illegal opcodes are handled (default: halt).")
@click.option("-v", "--verbose", count=True, help="Increase log verbosity (-v INFO, -vv DEBUG).")
def run(image: Optional[Path], offset: int, reset_vector: Optional[int], config_path: Optional[Path],
        trace: bool, pause: bool, quiet: bool, max_instructions: Optional[int],
        illegal_opcodes: Optional[str], verbose: int) -> None:
    """
    Load IMAGE, reset the CPU and run it.

    IMAGE is a raw binary, or Intel HEX when it ends in .hex / .ihx.
    It may be omitted when --config lists the images to load.
    """
    _configure_logging(verbose)
    if image is None and config_path is None:
        raise click.UsageError("Either IMAGE or --config is required.")

    builder = SystemBuilder()
    try:
        if config_path is not None:
            config = ConfigLoader().load_from_file(config_path)
        else:
            config = SystemConfig()
        if illegal_opcodes is not None:
            config.illegal_opcodes = illegal_opcodes
        cpu, bus = builder.build_system(config)

        if image is not None:
            load_program(image, bus, offset)
            if reset_vector is None and bus.peek(RESET_VECTOR) == 0 and bus.peek(RESET_VECTOR + 1) == 0:
                reset_vector = offset
        if reset_vector is not None:
            set_reset_vector(bus, reset_vector)
        # イメージとベクタが揃った状態でリセットし直す
        builder.apply_initial_state(cpu, config.initial_state)
    except Retro6502Error as e:
        raise click.ClickException(str(e)) from e

    logger.debug("Starting at $%04X", cpu.get_state().pc)
    stdin = click.get_text_stream("stdin")
    executed = 0
    try:
        while not cpu.is_halted:
            if max_instructions is not None and executed >= max_instructions:
                break
            pc = cpu.get_state().pc
            snapshot = cpu.step_snapshot()
            executed += 1
            if not quiet:
                click.echo(_format_trace(pc, snapshot, trace))
            if snapshot.fault is not None:
                fault = snapshot.fault
                click.echo(f"Illegal opcode ${fault.opcode:02X} ({fault.mnemonic}) at ${fault.address:04X}", err=True)
            if pause and not stdin.readline():
                break
    except KeyboardInterrupt:
        click.echo("Interrupted.", err=True)

    click.echo(f"Executed {executed} instructions, {cpu.total_cycles} cycles"
               f"{' (halted)' if cpu.is_halted else ''}")
    click.echo(_format_registers(cpu))

@cli.command()
@click.argument("image", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--offset", type=ADDRESS, default=0, help="Load address of a raw binary image (default: 0).")
@click.option("--start", type=ADDRESS, default=None, help="First address to disassemble (default: the offset).")
@click.option("--count", type=click.IntRange(min=1), default=None,
              help="Maximum number of instructions (default: the whole image).")
def disasm(image: Path, offset: int, start: Optional[int], count: Optional[int]) -> None:
    """Disassemble IMAGE as 6502 machine code."""
    bus = Bus()
    try:
        size = load_program(image, bus, offset)
    except Retro6502Error as e:
        raise click.ClickException(str(e)) from e

    first = offset if start is None else start
    length = size - (first - offset) if offset <= first < offset + size else size
    lines = disassemble(bus, first, max(length, 1))
    if count is not None:
        lines = lines[:count]
    for addr, hex_str, text in lines:
        click.echo(f"${addr:04X}  {hex_str:<8}  {text}")

if __name__ == "__main__":
    cli()
