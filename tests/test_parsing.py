"""Tests for tool output parsers."""

from stm32_dev.parsing import (
    classify_line,
    extract_probe_version,
    extract_version,
    parse_diagnostics,
    parse_memory_usage,
)

MEMORY_TABLE = """\
arm-none-eabi-gcc build/main.o -o build/blinky.elf
Memory region         Used Size  Region Size  %age Used
           FLASH:       12345 B     65536 B     18.8%
             RAM:        2048 B    131072 B      1.6%
"""


class TestMemoryUsage:
    def test_parses_byte_rows(self):
        usage = parse_memory_usage(MEMORY_TABLE)
        assert usage.flash.used == 12345
        assert usage.flash.total == 65536
        assert usage.flash.percentage == 18.8
        assert usage.ram.used == 2048
        assert usage.ram.total == 131072
        assert usage.ram.percentage == 1.6

    def test_converts_units_to_bytes(self):
        text = (
            "Memory region         Used Size  Region Size  %age Used\n"
            "             RAM:          12 KB       128 KB      9.38%\n"
            "           FLASH:          40 KB         1 MB      3.91%\n"
        )
        usage = parse_memory_usage(text)
        assert usage.ram.used == 12 * 1024
        assert usage.ram.total == 128 * 1024
        assert usage.flash.total == 1024 * 1024

    def test_ignores_extra_regions(self):
        text = MEMORY_TABLE + "          CCMRAM:           0 B        64 KB      0.00%\n"
        usage = parse_memory_usage(text)
        assert usage.flash.used == 12345

    def test_requires_both_regions(self):
        text = (
            "Memory region         Used Size  Region Size  %age Used\n"
            "           FLASH:       12345 B     65536 B     18.8%\n"
        )
        assert parse_memory_usage(text) is None

    def test_no_table(self):
        assert parse_memory_usage("make: Nothing to be done for 'all'.") is None

    def test_to_dict(self):
        data = parse_memory_usage(MEMORY_TABLE).to_dict()
        assert data["flash"] == {"used": 12345, "total": 65536, "percentage": 18.8}


class TestDiagnostics:
    def test_error_wins_over_warning(self):
        assert classify_line("main.c:3: warning: implicit declaration; error: aborting") == "error"

    def test_uppercase_error_marker(self):
        assert classify_line("ERROR: linker script missing") == "error"

    def test_warning(self):
        assert classify_line("main.c:10:5: warning: unused variable 'x'") == "warning"

    def test_plain_line(self):
        assert classify_line("arm-none-eabi-gcc -c main.c") is None

    def test_splits_and_strips(self):
        output = (
            "  main.c:10:5: error: 'x' undeclared\n"
            "main.c:3:1: warning: unused function\n"
            "compiling...\n"
        )
        errors, warnings = parse_diagnostics(output)
        assert errors == ["main.c:10:5: error: 'x' undeclared"]
        assert warnings == ["main.c:3:1: warning: unused function"]


class TestVersions:
    def test_dotted_version_from_first_line(self):
        assert extract_version("GNU Make 4.3.1\nBuilt for x86_64") == "4.3.1"

    def test_falls_back_to_trimmed_line(self):
        assert extract_version("  GNU Make 4.3  \nmore") == "GNU Make 4.3"

    def test_empty_output(self):
        assert extract_version("   \n") is None

    def test_probe_version(self):
        listing = "Bus 001 Device 005: ID 0483:3748 STMicroelectronics ST-LINK/V2"
        assert extract_probe_version(listing) == "V2"

    def test_probe_version_case_insensitive(self):
        assert extract_probe_version("STLINK-v3") == "V3"

    def test_probe_version_missing(self):
        assert extract_probe_version("ST-LINK") is None
