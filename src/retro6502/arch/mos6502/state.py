# src/retro6502/arch/mos6502/state.py
"""
MOS 6502 CPUの状態定義（レジスタファイルとステータスフラグ）。
"""
from dataclasses import dataclass, field, fields, replace

from retro6502.core.state import CpuState

# Flag bit masks
C_FLAG = 0x01  # Carry
Z_FLAG = 0x02  # Zero
I_FLAG = 0x04  # Interrupt Disable
D_FLAG = 0x08  # Decimal Mode
B_FLAG = 0x10  # Break Command
U_FLAG = 0x20  # Unused (Always 1)
V_FLAG = 0x40  # Overflow
N_FLAG = 0x80  # Negative

# @intent:responsibility ステータスレジスタPを名前付きのブール値として保持する。
# @intent:rationale Unusedビットはフィールドとして持たず、常に1を返す読み取り専用プロパティとする。
#                  これにより誤ってクリアされることがない。
@dataclass
class StatusFlags:
    """
    6502のステータスフラグ（N V - B D I Z C）。
    """
    n: bool = False
    v: bool = False
    b: bool = False
    d: bool = False
    i: bool = False
    z: bool = False
    c: bool = False

    @property
    def unused(self) -> bool:
        return True

    # @intent:responsibility フラグを1バイトにパックする。Unusedビットは常に1。
    def to_byte(self, brk: bool = None) -> int:
        """
        brk を指定した場合、Bビットはその値で上書きされる（PHP/BRKは True、IRQ/NMIは False）。
        """
        b = self.b if brk is None else brk
        value = U_FLAG
        if self.n: value |= N_FLAG
        if self.v: value |= V_FLAG
        if b: value |= B_FLAG
        if self.d: value |= D_FLAG
        if self.i: value |= I_FLAG
        if self.z: value |= Z_FLAG
        if self.c: value |= C_FLAG
        return value

    # @intent:responsibility 1バイトの値から各フラグを設定する。ビット5は無視される。
    def load_byte(self, value: int) -> None:
        self.n = bool(value & N_FLAG)
        self.v = bool(value & V_FLAG)
        self.b = bool(value & B_FLAG)
        self.d = bool(value & D_FLAG)
        self.i = bool(value & I_FLAG)
        self.z = bool(value & Z_FLAG)
        self.c = bool(value & C_FLAG)

    @classmethod
    def from_byte(cls, value: int) -> 'StatusFlags':
        flags = cls()
        flags.load_byte(value)
        return flags


# @intent:responsibility MOS 6502 CPUの状態（レジスタ、フラグ）を保持する。
# @intent:invariant レジスタへの代入は常にビット幅でマスクされる（PCは16bit、その他は8bit）。
@dataclass
class Mos6502CpuState(CpuState):
    """
    MOS 6502 CPUのレジスタ状態。

    sp はスタックページ ($0100-$01FF) 内の8bitオフセットです。
    """
    pc: int = 0x0000
    sp: int = 0xFF
    a: int = 0
    x: int = 0
    y: int = 0
    p: StatusFlags = field(default_factory=StatusFlags)

    def __setattr__(self, name, value):
        if name == "pc":
            value &= 0xFFFF
        elif name in ("sp", "a", "x", "y"):
            value &= 0xFF
        elif name == "p" and isinstance(value, int):
            value = StatusFlags.from_byte(value)
        object.__setattr__(self, name, value)

    # @intent:responsibility フラグの状態を取得するヘルパープロパティ。
    @property
    def flag_c(self) -> bool: return self.p.c
    @property
    def flag_z(self) -> bool: return self.p.z
    @property
    def flag_i(self) -> bool: return self.p.i
    @property
    def flag_d(self) -> bool: return self.p.d
    @property
    def flag_b(self) -> bool: return self.p.b
    @property
    def flag_v(self) -> bool: return self.p.v
    @property
    def flag_n(self) -> bool: return self.p.n

    # @intent:responsibility ステータスレジスタを1バイトの値として返す。
    @property
    def status(self) -> int:
        return self.p.to_byte()

    # @intent:responsibility 名前付き引数で複数のフラグを更新する。
    def update_flags(self, **kwargs) -> None:
        for flag_name, value in kwargs.items():
            if flag_name not in _FLAG_NAMES:
                raise ValueError(f"Unknown flag: {flag_name}")
            setattr(self.p, flag_name, bool(value))

    # @intent:responsibility Z, N フラグの共通更新ロジック。ロード・転送・増減・論理演算で使用。
    def update_zero_negative(self, value: int) -> None:
        value &= 0xFF
        self.p.z = value == 0
        self.p.n = (value & 0x80) != 0

    # @intent:responsibility 2の補数加算（キャリー付き）を行い、C, V, N, Z を更新して結果を返す。
    # @intent:note V: 同符号の2つのオペランドから、符号の異なる結果が得られた場合にセット。
    def update_carry_overflow_for_add(self, operand_a: int, operand_b: int, carry_in: int) -> int:
        total = operand_a + operand_b + carry_in
        result = total & 0xFF
        self.p.c = total > 0xFF
        self.p.v = (~(operand_a ^ operand_b) & (operand_a ^ result) & 0x80) != 0
        self.update_zero_negative(result)
        return result

    # @intent:responsibility 2の補数減算（ボロー付き）。A - B - (1 - C) を ~B の加算として計算する。
    # @intent:note C はボローが発生しなかった場合にセット。
    def update_carry_overflow_for_sub(self, operand_a: int, operand_b: int, carry_in: int) -> int:
        return self.update_carry_overflow_for_add(operand_a, operand_b ^ 0xFF, carry_in)

    # @intent:responsibility dataclasses.replaceのラッパー。テストや設定適用で使用する。
    def replace(self, **changes) -> 'Mos6502CpuState':
        if "p" not in changes:
            changes["p"] = replace(self.p)
        return replace(self, **changes)


_FLAG_NAMES = frozenset(f.name for f in fields(StatusFlags))
