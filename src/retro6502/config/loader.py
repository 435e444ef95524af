# retro6502/config/loader.py
"""
YAMLシステム構成ファイルのローダー。
"""
from pathlib import Path
from typing import Any, Dict, Union

import yaml

from retro6502.errors import ConfigError
from .models import SystemConfig, MemoryRegion, ImageConfig, CpuInitialState

REGION_TYPES = ("RAM", "ROM")
ILLEGAL_OPCODE_POLICIES = ("halt", "nop")
REGISTER_NAMES = ("a", "x", "y", "p")

class ConfigLoader:
    def load_from_file(self, path: Union[str, Path]) -> SystemConfig:
        path = Path(path)
        try:
            with open(path, 'r') as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise ConfigError(f"Cannot read config {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {path}: {e}") from e

        config = self.parse(data or {})
        # イメージの相対パスは構成ファイルの位置を基準にする
        for image in config.images:
            if not Path(image.path).is_absolute():
                image.path = str(path.parent / image.path)
        return config

    def parse(self, data: Dict[str, Any]) -> SystemConfig:
        if not isinstance(data, dict):
            raise ConfigError("Config root must be a mapping")

        arch = str(data.get("architecture", "MOS6502")).upper()
        if arch != "MOS6502":
            raise ConfigError(f"Unsupported architecture: {arch}")

        memory_map = []
        for region_data in data.get("memory_map", []):
            start = self._parse_int(region_data.get("start"))
            end = self._parse_int(region_data.get("end"))
            rtype = str(region_data.get("type", "RAM")).upper()
            if rtype not in REGION_TYPES:
                raise ConfigError(f"Unknown memory region type '{rtype}' for range {start:04X}-{end:04X}")
            if not 0 <= start <= end <= 0xFFFF:
                raise ConfigError(f"Invalid memory region range {start:04X}-{end:04X}")
            memory_map.append(MemoryRegion(start=start, end=end, type=rtype,
                                           label=region_data.get("label", "")))

        images = []
        for image_data in data.get("images", []):
            if isinstance(image_data, str):
                image_data = {"path": image_data}
            if "path" not in image_data:
                raise ConfigError("Image entry requires a 'path'")
            images.append(ImageConfig(path=str(image_data["path"]),
                                      offset=self._parse_int(image_data.get("offset", 0))))

        reset_vector = data.get("reset_vector")
        if reset_vector is not None:
            reset_vector = self._parse_int(reset_vector)

        illegal_opcodes = str(data.get("illegal_opcodes", "halt")).lower()
        if illegal_opcodes not in ILLEGAL_OPCODE_POLICIES:
            raise ConfigError(f"Unknown illegal_opcodes policy: {illegal_opcodes}")

        symbols = {}
        for label, address in (data.get("symbols") or {}).items():
            address = self._parse_int(address)
            if not 0 <= address <= 0xFFFF:
                raise ConfigError(f"Symbol {label} address out of range: {address:#x}")
            symbols[str(label)] = address

        return SystemConfig(
            memory_map=memory_map,
            images=images,
            reset_vector=reset_vector,
            illegal_opcodes=illegal_opcodes,
            symbols=symbols,
            initial_state=self._parse_initial_state(data.get("initial_state", {})),
        )

    def _parse_initial_state(self, data: Dict[str, Any]) -> CpuInitialState:
        registers = {}
        for name, value in (data.get("registers") or {}).items():
            name = str(name).lower()
            if name not in REGISTER_NAMES:
                raise ConfigError(f"Unknown register in initial_state: {name}")
            registers[name] = self._parse_int(value)

        pc = data.get("pc")
        sp = data.get("sp")
        return CpuInitialState(
            use_reset_vector=bool(data.get("use_reset_vector", pc is None)),
            pc=None if pc is None else self._parse_int(pc),
            sp=None if sp is None else self._parse_int(sp),
            registers=registers,
        )

    # @intent:responsibility 10進数、"0x"接頭辞、"$"接頭辞の整数表記を受け付ける。
    def _parse_int(self, value: Any) -> int:
        if isinstance(value, bool):
            raise ConfigError(f"Invalid integer format: {value}")
        if isinstance(value, int):
            return value
        if isinstance(value, str):
            text = value.strip()
            try:
                if text.lower().startswith("0x"):
                    return int(text, 16)
                if text.startswith("$"):
                    return int(text[1:], 16)
                return int(text)
            except ValueError:
                pass
        raise ConfigError(f"Invalid integer format: {value}")
