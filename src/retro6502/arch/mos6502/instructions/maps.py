# src/retro6502/arch/mos6502/instructions/maps.py
"""
MOS 6502 命令テーブルとデコード/実行ロジック。

256個すべてのオペコードに対して、明示的な Instruction レコードを持つ。
未定義オペコードも OpcodeKind (UNDOCUMENTED / ILLEGAL) でその扱いを明示する。
テーブルはインポート時に一度だけ構築・検証され、以後変更されない。
"""
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Tuple

from retro6502.transport.bus import Bus
from retro6502.core.snapshot import Operation
from retro6502.arch.mos6502.state import Mos6502CpuState
from retro6502.arch.mos6502.instructions import base, load, alu, control, undocumented
from retro6502.arch.mos6502.instructions.base import AddressingMode, AddressingResult

# Execution Function Type: 戻り値は実行時に確定する追加サイクル数 (分岐成立時のみ)
Handler = Callable[[Mos6502CpuState, Bus, AddressingResult], Optional[int]]

# @intent:responsibility オペコードの分類。
class OpcodeKind(Enum):
    OFFICIAL = "official"
    UNDOCUMENTED = "undocumented" # 非公式だが動作が安定しているため実行する
    ILLEGAL = "illegal" # JAM および動作が不安定な命令。実行エンジンの方針で処理する

# @intent:responsibility 1オペコード分の不変な命令定義。
@dataclass(frozen=True)
class Instruction:
    opcode: int
    mnemonic: str
    mode: AddressingMode
    handler: Handler
    cycles: int
    page_penalty: bool = False # インデックス加算でページを跨いだ場合に +1 サイクル
    kind: OpcodeKind = OpcodeKind.OFFICIAL

    @property
    def length(self) -> int:
        return 1 + base.OPERAND_LENGTH[self.mode]

IMP = AddressingMode.IMPLIED
ACC = AddressingMode.ACCUMULATOR
IMM = AddressingMode.IMMEDIATE
ZP = AddressingMode.ZERO_PAGE
ZPX = AddressingMode.ZERO_PAGE_X
ZPY = AddressingMode.ZERO_PAGE_Y
ABS = AddressingMode.ABSOLUTE
ABX = AddressingMode.ABSOLUTE_X
ABY = AddressingMode.ABSOLUTE_Y
IND = AddressingMode.INDIRECT
IZX = AddressingMode.INDEXED_INDIRECT
IZY = AddressingMode.INDIRECT_INDEXED
REL = AddressingMode.RELATIVE

_U = OpcodeKind.UNDOCUMENTED
_X = OpcodeKind.ILLEGAL

# Opcode Entry: (Mnemonic, Addressing Mode, Handler, Base Cycles[, Page Penalty[, Kind]])
_ENTRIES: Dict[int, tuple] = {
    # --- Load/Store/Transfer ---
    0xA9: ("LDA", IMM, load.lda, 2),
    0xA5: ("LDA", ZP, load.lda, 3),
    0xB5: ("LDA", ZPX, load.lda, 4),
    0xAD: ("LDA", ABS, load.lda, 4),
    0xBD: ("LDA", ABX, load.lda, 4, True),
    0xB9: ("LDA", ABY, load.lda, 4, True),
    0xA1: ("LDA", IZX, load.lda, 6),
    0xB1: ("LDA", IZY, load.lda, 5, True),

    0xA2: ("LDX", IMM, load.ldx, 2),
    0xA6: ("LDX", ZP, load.ldx, 3),
    0xB6: ("LDX", ZPY, load.ldx, 4),
    0xAE: ("LDX", ABS, load.ldx, 4),
    0xBE: ("LDX", ABY, load.ldx, 4, True),

    0xA0: ("LDY", IMM, load.ldy, 2),
    0xA4: ("LDY", ZP, load.ldy, 3),
    0xB4: ("LDY", ZPX, load.ldy, 4),
    0xAC: ("LDY", ABS, load.ldy, 4),
    0xBC: ("LDY", ABX, load.ldy, 4, True),

    0x85: ("STA", ZP, load.sta, 3),
    0x95: ("STA", ZPX, load.sta, 4),
    0x8D: ("STA", ABS, load.sta, 4),
    0x9D: ("STA", ABX, load.sta, 5),
    0x99: ("STA", ABY, load.sta, 5),
    0x81: ("STA", IZX, load.sta, 6),
    0x91: ("STA", IZY, load.sta, 6),

    0x86: ("STX", ZP, load.stx, 3),
    0x96: ("STX", ZPY, load.stx, 4),
    0x8E: ("STX", ABS, load.stx, 4),

    0x84: ("STY", ZP, load.sty, 3),
    0x94: ("STY", ZPX, load.sty, 4),
    0x8C: ("STY", ABS, load.sty, 4),

    0xAA: ("TAX", IMP, load.tax, 2),
    0xA8: ("TAY", IMP, load.tay, 2),
    0x8A: ("TXA", IMP, load.txa, 2),
    0x98: ("TYA", IMP, load.tya, 2),
    0x9A: ("TXS", IMP, load.txs, 2),
    0xBA: ("TSX", IMP, load.tsx, 2),

    # --- ALU Operations ---
    # ADC
    0x69: ("ADC", IMM, alu.adc, 2),
    0x65: ("ADC", ZP, alu.adc, 3),
    0x75: ("ADC", ZPX, alu.adc, 4),
    0x6D: ("ADC", ABS, alu.adc, 4),
    0x7D: ("ADC", ABX, alu.adc, 4, True),
    0x79: ("ADC", ABY, alu.adc, 4, True),
    0x61: ("ADC", IZX, alu.adc, 6),
    0x71: ("ADC", IZY, alu.adc, 5, True),

    # SBC
    0xE9: ("SBC", IMM, alu.sbc, 2),
    0xE5: ("SBC", ZP, alu.sbc, 3),
    0xF5: ("SBC", ZPX, alu.sbc, 4),
    0xED: ("SBC", ABS, alu.sbc, 4),
    0xFD: ("SBC", ABX, alu.sbc, 4, True),
    0xF9: ("SBC", ABY, alu.sbc, 4, True),
    0xE1: ("SBC", IZX, alu.sbc, 6),
    0xF1: ("SBC", IZY, alu.sbc, 5, True),

    # AND
    0x29: ("AND", IMM, alu.and_, 2),
    0x25: ("AND", ZP, alu.and_, 3),
    0x35: ("AND", ZPX, alu.and_, 4),
    0x2D: ("AND", ABS, alu.and_, 4),
    0x3D: ("AND", ABX, alu.and_, 4, True),
    0x39: ("AND", ABY, alu.and_, 4, True),
    0x21: ("AND", IZX, alu.and_, 6),
    0x31: ("AND", IZY, alu.and_, 5, True),

    # ORA
    0x09: ("ORA", IMM, alu.ora, 2),
    0x05: ("ORA", ZP, alu.ora, 3),
    0x15: ("ORA", ZPX, alu.ora, 4),
    0x0D: ("ORA", ABS, alu.ora, 4),
    0x1D: ("ORA", ABX, alu.ora, 4, True),
    0x19: ("ORA", ABY, alu.ora, 4, True),
    0x01: ("ORA", IZX, alu.ora, 6),
    0x11: ("ORA", IZY, alu.ora, 5, True),

    # EOR
    0x49: ("EOR", IMM, alu.eor, 2),
    0x45: ("EOR", ZP, alu.eor, 3),
    0x55: ("EOR", ZPX, alu.eor, 4),
    0x4D: ("EOR", ABS, alu.eor, 4),
    0x5D: ("EOR", ABX, alu.eor, 4, True),
    0x59: ("EOR", ABY, alu.eor, 4, True),
    0x41: ("EOR", IZX, alu.eor, 6),
    0x51: ("EOR", IZY, alu.eor, 5, True),

    # BIT
    0x24: ("BIT", ZP, alu.bit, 3),
    0x2C: ("BIT", ABS, alu.bit, 4),

    # CMP / CPX / CPY
    0xC9: ("CMP", IMM, alu.cmp, 2),
    0xC5: ("CMP", ZP, alu.cmp, 3),
    0xD5: ("CMP", ZPX, alu.cmp, 4),
    0xCD: ("CMP", ABS, alu.cmp, 4),
    0xDD: ("CMP", ABX, alu.cmp, 4, True),
    0xD9: ("CMP", ABY, alu.cmp, 4, True),
    0xC1: ("CMP", IZX, alu.cmp, 6),
    0xD1: ("CMP", IZY, alu.cmp, 5, True),

    0xE0: ("CPX", IMM, alu.cpx, 2),
    0xE4: ("CPX", ZP, alu.cpx, 3),
    0xEC: ("CPX", ABS, alu.cpx, 4),

    0xC0: ("CPY", IMM, alu.cpy, 2),
    0xC4: ("CPY", ZP, alu.cpy, 3),
    0xCC: ("CPY", ABS, alu.cpy, 4),

    # Shift / Rotate
    0x0A: ("ASL", ACC, alu.asl, 2),
    0x06: ("ASL", ZP, alu.asl, 5),
    0x16: ("ASL", ZPX, alu.asl, 6),
    0x0E: ("ASL", ABS, alu.asl, 6),
    0x1E: ("ASL", ABX, alu.asl, 7),

    0x4A: ("LSR", ACC, alu.lsr, 2),
    0x46: ("LSR", ZP, alu.lsr, 5),
    0x56: ("LSR", ZPX, alu.lsr, 6),
    0x4E: ("LSR", ABS, alu.lsr, 6),
    0x5E: ("LSR", ABX, alu.lsr, 7),

    0x2A: ("ROL", ACC, alu.rol, 2),
    0x26: ("ROL", ZP, alu.rol, 5),
    0x36: ("ROL", ZPX, alu.rol, 6),
    0x2E: ("ROL", ABS, alu.rol, 6),
    0x3E: ("ROL", ABX, alu.rol, 7),

    0x6A: ("ROR", ACC, alu.ror, 2),
    0x66: ("ROR", ZP, alu.ror, 5),
    0x76: ("ROR", ZPX, alu.ror, 6),
    0x6E: ("ROR", ABS, alu.ror, 6),
    0x7E: ("ROR", ABX, alu.ror, 7),

    # Increment / Decrement
    0xE6: ("INC", ZP, alu.inc, 5),
    0xF6: ("INC", ZPX, alu.inc, 6),
    0xEE: ("INC", ABS, alu.inc, 6),
    0xFE: ("INC", ABX, alu.inc, 7),

    0xC6: ("DEC", ZP, alu.dec, 5),
    0xD6: ("DEC", ZPX, alu.dec, 6),
    0xCE: ("DEC", ABS, alu.dec, 6),
    0xDE: ("DEC", ABX, alu.dec, 7),

    0xE8: ("INX", IMP, alu.inx, 2),
    0xCA: ("DEX", IMP, alu.dex, 2),
    0xC8: ("INY", IMP, alu.iny, 2),
    0x88: ("DEY", IMP, alu.dey, 2),

    # --- Control Instructions ---
    # Branch (+1 if branch taken, +2 if page crossed)
    0x90: ("BCC", REL, control.bcc, 2),
    0xB0: ("BCS", REL, control.bcs, 2),
    0xF0: ("BEQ", REL, control.beq, 2),
    0xD0: ("BNE", REL, control.bne, 2),
    0x30: ("BMI", REL, control.bmi, 2),
    0x10: ("BPL", REL, control.bpl, 2),
    0x50: ("BVC", REL, control.bvc, 2),
    0x70: ("BVS", REL, control.bvs, 2),

    # Jump / Subroutine
    0x4C: ("JMP", ABS, control.jmp, 3),
    0x6C: ("JMP", IND, control.jmp, 5),
    0x20: ("JSR", ABS, control.jsr, 6),
    0x60: ("RTS", IMP, control.rts, 6),

    # Stack
    0x48: ("PHA", IMP, control.pha, 3),
    0x08: ("PHP", IMP, control.php, 3),
    0x68: ("PLA", IMP, control.pla, 4),
    0x28: ("PLP", IMP, control.plp, 4),

    # Flags
    0x18: ("CLC", IMP, control.clc, 2),
    0x38: ("SEC", IMP, control.sec, 2),
    0x58: ("CLI", IMP, control.cli, 2),
    0x78: ("SEI", IMP, control.sei, 2),
    0xB8: ("CLV", IMP, control.clv, 2),
    0xD8: ("CLD", IMP, control.cld, 2),
    0xF8: ("SED", IMP, control.sed, 2),

    # System
    0xEA: ("NOP", IMP, control.nop, 2),
    0x00: ("BRK", IMP, control.brk, 7),
    0x40: ("RTI", IMP, control.rti, 6),

    # --- Undocumented (stable) ---
    0xA7: ("LAX", ZP, undocumented.lax, 3, False, _U),
    0xB7: ("LAX", ZPY, undocumented.lax, 4, False, _U),
    0xAF: ("LAX", ABS, undocumented.lax, 4, False, _U),
    0xBF: ("LAX", ABY, undocumented.lax, 4, True, _U),
    0xA3: ("LAX", IZX, undocumented.lax, 6, False, _U),
    0xB3: ("LAX", IZY, undocumented.lax, 5, True, _U),

    0x87: ("SAX", ZP, undocumented.sax, 3, False, _U),
    0x97: ("SAX", ZPY, undocumented.sax, 4, False, _U),
    0x8F: ("SAX", ABS, undocumented.sax, 4, False, _U),
    0x83: ("SAX", IZX, undocumented.sax, 6, False, _U),

    0xC7: ("DCP", ZP, undocumented.dcp, 5, False, _U),
    0xD7: ("DCP", ZPX, undocumented.dcp, 6, False, _U),
    0xCF: ("DCP", ABS, undocumented.dcp, 6, False, _U),
    0xDF: ("DCP", ABX, undocumented.dcp, 7, False, _U),
    0xDB: ("DCP", ABY, undocumented.dcp, 7, False, _U),
    0xC3: ("DCP", IZX, undocumented.dcp, 8, False, _U),
    0xD3: ("DCP", IZY, undocumented.dcp, 8, False, _U),

    0xE7: ("ISC", ZP, undocumented.isc, 5, False, _U),
    0xF7: ("ISC", ZPX, undocumented.isc, 6, False, _U),
    0xEF: ("ISC", ABS, undocumented.isc, 6, False, _U),
    0xFF: ("ISC", ABX, undocumented.isc, 7, False, _U),
    0xFB: ("ISC", ABY, undocumented.isc, 7, False, _U),
    0xE3: ("ISC", IZX, undocumented.isc, 8, False, _U),
    0xF3: ("ISC", IZY, undocumented.isc, 8, False, _U),

    0x07: ("SLO", ZP, undocumented.slo, 5, False, _U),
    0x17: ("SLO", ZPX, undocumented.slo, 6, False, _U),
    0x0F: ("SLO", ABS, undocumented.slo, 6, False, _U),
    0x1F: ("SLO", ABX, undocumented.slo, 7, False, _U),
    0x1B: ("SLO", ABY, undocumented.slo, 7, False, _U),
    0x03: ("SLO", IZX, undocumented.slo, 8, False, _U),
    0x13: ("SLO", IZY, undocumented.slo, 8, False, _U),

    0x27: ("RLA", ZP, undocumented.rla, 5, False, _U),
    0x37: ("RLA", ZPX, undocumented.rla, 6, False, _U),
    0x2F: ("RLA", ABS, undocumented.rla, 6, False, _U),
    0x3F: ("RLA", ABX, undocumented.rla, 7, False, _U),
    0x3B: ("RLA", ABY, undocumented.rla, 7, False, _U),
    0x23: ("RLA", IZX, undocumented.rla, 8, False, _U),
    0x33: ("RLA", IZY, undocumented.rla, 8, False, _U),

    0x47: ("SRE", ZP, undocumented.sre, 5, False, _U),
    0x57: ("SRE", ZPX, undocumented.sre, 6, False, _U),
    0x4F: ("SRE", ABS, undocumented.sre, 6, False, _U),
    0x5F: ("SRE", ABX, undocumented.sre, 7, False, _U),
    0x5B: ("SRE", ABY, undocumented.sre, 7, False, _U),
    0x43: ("SRE", IZX, undocumented.sre, 8, False, _U),
    0x53: ("SRE", IZY, undocumented.sre, 8, False, _U),

    0x67: ("RRA", ZP, undocumented.rra, 5, False, _U),
    0x77: ("RRA", ZPX, undocumented.rra, 6, False, _U),
    0x6F: ("RRA", ABS, undocumented.rra, 6, False, _U),
    0x7F: ("RRA", ABX, undocumented.rra, 7, False, _U),
    0x7B: ("RRA", ABY, undocumented.rra, 7, False, _U),
    0x63: ("RRA", IZX, undocumented.rra, 8, False, _U),
    0x73: ("RRA", IZY, undocumented.rra, 8, False, _U),

    0x0B: ("ANC", IMM, undocumented.anc, 2, False, _U),
    0x2B: ("ANC", IMM, undocumented.anc, 2, False, _U),
    0x4B: ("ALR", IMM, undocumented.alr, 2, False, _U),
    0x6B: ("ARR", IMM, undocumented.arr, 2, False, _U),
    0xCB: ("SBX", IMM, undocumented.sbx, 2, False, _U),
    0xBB: ("LAS", ABY, undocumented.las, 4, True, _U),
    0xEB: ("SBC", IMM, alu.sbc, 2, False, _U),

    # NOP variants (1, 2, 3 bytes)
    0x1A: ("NOP", IMP, control.nop, 2, False, _U),
    0x3A: ("NOP", IMP, control.nop, 2, False, _U),
    0x5A: ("NOP", IMP, control.nop, 2, False, _U),
    0x7A: ("NOP", IMP, control.nop, 2, False, _U),
    0xDA: ("NOP", IMP, control.nop, 2, False, _U),
    0xFA: ("NOP", IMP, control.nop, 2, False, _U),
    0x80: ("NOP", IMM, control.nop, 2, False, _U),
    0x82: ("NOP", IMM, control.nop, 2, False, _U),
    0x89: ("NOP", IMM, control.nop, 2, False, _U),
    0xC2: ("NOP", IMM, control.nop, 2, False, _U),
    0xE2: ("NOP", IMM, control.nop, 2, False, _U),
    0x04: ("NOP", ZP, control.nop, 3, False, _U),
    0x44: ("NOP", ZP, control.nop, 3, False, _U),
    0x64: ("NOP", ZP, control.nop, 3, False, _U),
    0x14: ("NOP", ZPX, control.nop, 4, False, _U),
    0x34: ("NOP", ZPX, control.nop, 4, False, _U),
    0x54: ("NOP", ZPX, control.nop, 4, False, _U),
    0x74: ("NOP", ZPX, control.nop, 4, False, _U),
    0xD4: ("NOP", ZPX, control.nop, 4, False, _U),
    0xF4: ("NOP", ZPX, control.nop, 4, False, _U),
    0x0C: ("NOP", ABS, control.nop, 4, False, _U),
    0x1C: ("NOP", ABX, control.nop, 4, True, _U),
    0x3C: ("NOP", ABX, control.nop, 4, True, _U),
    0x5C: ("NOP", ABX, control.nop, 4, True, _U),
    0x7C: ("NOP", ABX, control.nop, 4, True, _U),
    0xDC: ("NOP", ABX, control.nop, 4, True, _U),
    0xFC: ("NOP", ABX, control.nop, 4, True, _U),

    # --- Illegal: unstable ---
    0x8B: ("XAA", IMM, undocumented.illegal, 2, False, _X),
    0xAB: ("LXA", IMM, undocumented.illegal, 2, False, _X),
    0x93: ("AHX", IZY, undocumented.illegal, 6, False, _X),
    0x9F: ("AHX", ABY, undocumented.illegal, 5, False, _X),
    0x9B: ("TAS", ABY, undocumented.illegal, 5, False, _X),
    0x9C: ("SHY", ABX, undocumented.illegal, 5, False, _X),
    0x9E: ("SHX", ABY, undocumented.illegal, 5, False, _X),
}

# @intent:note JAM (KIL): 実機ではCPUがロックし、リセットでしか復帰しない。
JAM_OPCODES = (0x02, 0x12, 0x22, 0x32, 0x42, 0x52, 0x62, 0x72, 0x92, 0xB2, 0xD2, 0xF2)
for _opcode in JAM_OPCODES:
    _ENTRIES[_opcode] = ("JAM", IMP, undocumented.illegal, 2, False, _X)

# @intent:responsibility エントリ定義から256要素の命令テーブルを構築し、網羅性を検証する。
def _build_table(entries: Dict[int, tuple]) -> Tuple[Instruction, ...]:
    missing = [op for op in range(0x100) if op not in entries]
    if missing or len(entries) != 0x100:
        raise ValueError(f"Opcode table is incomplete: missing {[f'{op:02X}' for op in missing]}")
    return tuple(Instruction(opcode, *entries[opcode]) for opcode in range(0x100))

OPCODE_TABLE: Tuple[Instruction, ...] = _build_table(_ENTRIES)

# トレース表示専用のニーモニック表。実行には影響しない。
MNEMONICS: Tuple[str, ...] = tuple(instr.mnemonic for instr in OPCODE_TABLE)

# @intent:responsibility 命令テーブルを1回のインデックス参照で引く。
def lookup(opcode: int) -> Instruction:
    return OPCODE_TABLE[opcode & 0xFF]

# @intent:responsibility オペコードとオペランドを解決し、Operation と解決結果を返す。
# @intent:note オペランドはここで一度だけ読み出し、実行フェーズでは解決結果を再利用する。
def decode_opcode(opcode: int, bus: Bus, pc: int,
                  state: Mos6502CpuState) -> Tuple[Operation, AddressingResult]:
    instr = lookup(opcode)
    addr_res = base.resolve(instr.mode, pc, bus, state)

    cycles = instr.cycles
    if instr.page_penalty and addr_res.page_crossed:
        cycles += 1

    operation = Operation(
        opcode_hex=f"{opcode:02X}",
        mnemonic=instr.mnemonic,
        operands=[addr_res.operand_str] if addr_res.operand_str else [],
        operand_bytes=addr_res.operand_bytes,
        cycle_count=cycles,
        length=instr.length,
    )
    return operation, addr_res

# @intent:responsibility 命令ハンドラを呼び出し、実行時に確定した追加サイクル数を返す。
def execute_instruction(instr: Instruction, state: Mos6502CpuState, bus: Bus,
                        addr_res: AddressingResult) -> int:
    extra = instr.handler(state, bus, addr_res)
    return extra or 0
