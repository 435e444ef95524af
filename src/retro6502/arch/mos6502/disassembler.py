# src/retro6502/arch/mos6502/disassembler.py
"""
MOS 6502 逆アセンブラ。

トレース表示専用であり、命令の実行には一切関与しない。
"""
from typing import List, Tuple

from retro6502.transport.bus import Bus
from retro6502.arch.mos6502.instructions.base import AddressingMode, OPERAND_LENGTH
from retro6502.arch.mos6502.instructions.maps import OpcodeKind, lookup

# @intent:responsibility 1命令分のオペランド表記を生成する。
# @intent:note 実行時のレジスタ値に依存しない静的な表記のみを扱う (インデックス加算は行わない)。
def format_operand(mode: AddressingMode, addr: int, operand_bytes: List[int]) -> str:
    if mode == AddressingMode.IMPLIED:
        return ""
    if mode == AddressingMode.ACCUMULATOR:
        return "A"
    if mode == AddressingMode.RELATIVE:
        offset = operand_bytes[0]
        signed = offset - 0x100 if offset >= 0x80 else offset
        return f"${(addr + 2 + signed) & 0xFFFF:04X}"

    value = operand_bytes[0] if len(operand_bytes) == 1 else operand_bytes[0] | (operand_bytes[1] << 8)
    width = 2 if len(operand_bytes) == 1 else 4
    text = f"${value:0{width}X}"
    return {
        AddressingMode.IMMEDIATE: f"#{text}",
        AddressingMode.ZERO_PAGE_X: f"{text},X",
        AddressingMode.ZERO_PAGE_Y: f"{text},Y",
        AddressingMode.ABSOLUTE_X: f"{text},X",
        AddressingMode.ABSOLUTE_Y: f"{text},Y",
        AddressingMode.INDIRECT: f"({text})",
        AddressingMode.INDEXED_INDIRECT: f"({text},X)",
        AddressingMode.INDIRECT_INDEXED: f"({text}),Y",
    }.get(mode, text)

# @intent:responsibility 指定されたメモリ範囲を逆アセンブルする。
def disassemble(bus: Bus, start_addr: int, length: int) -> List[Tuple[int, str, str]]:
    """
    メモリを解析し、(アドレス, HEX, ニーモニック) のリストを返す。
    length はバイト数。ILLEGAL命令は "DB $xx" として1バイトずつ表示する。
    """
    results = []
    current_addr = start_addr
    end_addr = start_addr + length

    # peek を使用するため、バスアクティビティログは汚さない
    while current_addr < end_addr:
        addr = current_addr & 0xFFFF
        opcode = bus.peek(addr)
        instr = lookup(opcode)

        if instr.kind is OpcodeKind.ILLEGAL:
            results.append((addr, f"{opcode:02X}", f"DB ${opcode:02X}"))
            current_addr += 1
            continue

        operand_bytes = [bus.peek((addr + i) & 0xFFFF) for i in range(1, 1 + OPERAND_LENGTH[instr.mode])]
        hex_str = " ".join(f"{b:02X}" for b in [opcode] + operand_bytes)
        mnemonic_full = f"{instr.mnemonic} {format_operand(instr.mode, addr, operand_bytes)}".strip()

        results.append((addr, hex_str, mnemonic_full))
        current_addr += instr.length

    return results
