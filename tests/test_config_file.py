"""Tests for per-scope tool config files."""

import pytest
from versionscope.config_file import ConfigFile
from versionscope.config_file import determine_config_path
from versionscope.config_file import load_config
from versionscope.config_file import parse_tool_config
from versionscope.config_file import read_legacy_file
from versionscope.exceptions import ConfigFileError
from versionscope.exceptions import ConfigValidationError
from versionscope.models import ToolConfig


class TestParseToolConfig:
    """Test the simple and extended tool entry forms."""

    def test_simple_form(self):
        """Test a plain string entry."""
        assert parse_tool_config("nodejs", "21.5.1") == ToolConfig(version="21.5.1")

    def test_extended_form(self):
        """Test a table entry with attributes."""
        config = parse_tool_config("java", {"version": "21", "vendor": "openjdk", "lts": True, "build": 7})
        assert config.version == "21"
        assert config.attr == {"vendor": "openjdk", "lts": "true", "build": "7"}

    def test_extended_form_without_version(self):
        """Test a table entry missing its version."""
        assert parse_tool_config("java", {"vendor": "openjdk"}).version == "unknown"

    def test_invalid_type(self):
        """Test entries of the wrong type are rejected."""
        with pytest.raises(ConfigValidationError, match="nodejs"):
            parse_tool_config("nodejs", 21)


class TestConfigFileSerialization:
    """Test TOML output and parsing."""

    def test_dumps_sorted_with_inline_tables(self):
        """Test tools are written sorted, with attributes as inline tables."""
        config = ConfigFile()
        config.set_tool("nodejs", "21.5.1")
        config.set_tool("java", "21", {"vendor": "openjdk", "lts": "true"})

        assert config.dumps() == (
            "[tools]\n"
            'java = {version = "21", lts = true, vendor = "openjdk"}\n'
            'nodejs = "21.5.1"\n'
        )

    def test_round_trip(self):
        """Test dumped text loads back into the same tools."""
        config = ConfigFile()
        config.set_tool("nodejs", "21.5.1")
        config.set_tool("java", "21", {"vendor": "open jdk", "unlink": "true", "quote": 'a"b'})
        config.set_tool("dotted.name", "1.0")

        parsed = ConfigFile.loads(config.dumps())
        assert parsed.tools == config.tools

    def test_attribute_values_keep_their_text(self):
        """Only canonical integers and booleans are written bare; other text survives unchanged."""
        attr = {"build": "-0", "patch": "007", "size": "1_000", "ctrl": "a\x7fb", "tab": "x\ty", "count": "12"}
        config = ConfigFile()
        config.set_tool("java", "21", attr)

        text = config.dumps()
        assert "count = 12" in text
        assert "\x7f" not in text
        assert ConfigFile.loads(text).get_tool("java").attr == attr

    def test_loads_invalid_toml(self):
        """Test malformed TOML raises ConfigFileError."""
        with pytest.raises(ConfigFileError):
            ConfigFile.loads("[tools\nnodejs = ")

    def test_loads_invalid_tools_section(self):
        """Test a non-table [tools] section is rejected."""
        with pytest.raises(ConfigValidationError):
            ConfigFile.loads('tools = "nodejs"')

    def test_loads_without_tools(self):
        """Test a file without [tools] loads as empty."""
        assert ConfigFile.loads("").is_empty


class TestConfigFileAccess:
    """Test tool helpers."""

    def test_set_get_remove(self):
        """Test setting, reading and removing a tool."""
        config = ConfigFile()
        config.set_tool("nodejs", "20")
        assert config.get_tool_version("nodejs") == "20"
        assert config.all_tools() == {"nodejs": "20"}
        assert config.remove_tool("nodejs")
        assert not config.remove_tool("nodejs")
        assert config.get_tool("nodejs") is None

    def test_names_are_case_sensitive(self):
        """Test tool names are case sensitive."""
        config = ConfigFile()
        config.set_tool("Node", "1")
        config.set_tool("node", "2")
        assert config.all_tools() == {"Node": "1", "node": "2"}


class TestConfigFileSave:
    """Test persistence rules."""

    def test_load_missing_file_keeps_path(self, tmp_path):
        """Test loading a missing file keeps the path for saving."""
        path = tmp_path / ".versionscope.toml"
        config = ConfigFile.load(path)
        assert config.is_empty
        assert config.path == path
        assert not path.exists()

    def test_empty_new_config_is_not_written(self, tmp_path):
        """Test an empty new config does not create a file."""
        path = tmp_path / "nested" / ".versionscope.toml"
        ConfigFile(path=path).save()
        assert not path.exists()
        assert not path.parent.exists()

    def test_save_creates_directory_lazily(self, tmp_path):
        """Test saving creates the parent directory."""
        path = tmp_path / "nested" / ".versionscope.toml"
        config = ConfigFile.load(path)
        assert not path.parent.exists()

        config.set_tool("nodejs", "20")
        config.save()
        assert ConfigFile.load(path).all_tools() == {"nodejs": "20"}

    def test_emptied_existing_config_is_rewritten(self, tmp_path):
        """Test an existing file emptied of tools is still rewritten."""
        path = tmp_path / ".versionscope.toml"
        config = ConfigFile(path=path)
        config.set_tool("nodejs", "20")
        config.save()

        config.remove_tool("nodejs")
        config.save()
        assert path.read_text() == "[tools]\n"

    def test_unbound_config_cannot_save(self):
        """Test saving a config with no path fails."""
        config = ConfigFile()
        config.save()  # empty: nothing to do
        config.set_tool("nodejs", "20")
        with pytest.raises(ConfigFileError):
            config.save()

    def test_save_to_directory_binds_path(self, tmp_path):
        """Test saving into a directory binds the config to the chosen file."""
        config = ConfigFile()
        config.set_tool("nodejs", "20")
        config.save_to(tmp_path)
        assert config.path == tmp_path / ".versionscope.toml"
        assert not config.is_new


class TestLoadConfig:
    """Test filename precedence and the legacy upgrade."""

    def test_determine_config_path_precedence(self, tmp_path):
        """Test the filename chosen for a new config."""
        assert determine_config_path(tmp_path) == tmp_path / ".versionscope.toml"
        (tmp_path / "versionscope.toml").write_text("[tools]\n")
        assert determine_config_path(tmp_path) == tmp_path / "versionscope.toml"
        (tmp_path / ".versionscope.toml").write_text("[tools]\n")
        assert determine_config_path(tmp_path) == tmp_path / ".versionscope.toml"

    def test_primary_file_wins(self, tmp_path):
        """Test the primary filename is read first."""
        (tmp_path / ".versionscope.toml").write_text('[tools]\nnodejs = "20"\n')
        (tmp_path / "versionscope.toml").write_text('[tools]\nnodejs = "18"\n')
        (tmp_path / ".tool-versions").write_text("nodejs 16\n")
        assert load_config(tmp_path).get_tool_version("nodejs") == "20"

    def test_secondary_file(self, tmp_path):
        """Test the secondary filename is read when alone."""
        (tmp_path / "versionscope.toml").write_text('[tools]\nnodejs = "18"\n')
        config = load_config(tmp_path)
        assert config.get_tool_version("nodejs") == "18"
        assert config.path == tmp_path / "versionscope.toml"

    def test_legacy_file_is_upgraded_once(self, tmp_path):
        """Test a legacy file is upgraded once and left in place."""
        legacy = tmp_path / ".tool-versions"
        legacy.write_text("# pinned\nnodejs 20.5.0\npython 3.12.1  # comment\nbroken\n")

        config = load_config(tmp_path)
        assert config.all_tools() == {"nodejs": "20.5.0", "python": "3.12.1"}
        assert config.path == tmp_path / ".versionscope.toml"

        # Legacy file untouched, new-format file written
        assert legacy.read_text().startswith("# pinned")
        assert (tmp_path / ".versionscope.toml").exists()

        # Later loads read the new file
        legacy.write_text("nodejs 16\n")
        assert load_config(tmp_path).get_tool_version("nodejs") == "20.5.0"

    def test_nothing_exists(self, tmp_path):
        """Test a directory without any config."""
        directory = tmp_path / "missing"
        config = load_config(directory)
        assert config.is_empty
        assert config.path == directory / ".versionscope.toml"
        assert not directory.exists()

    def test_is_new_until_written(self, tmp_path):
        """A loaded config stays new until its file exists."""
        config = load_config(tmp_path)
        assert config.is_new

        config.set_tool("nodejs", "20")
        config.save()
        assert not config.is_new
        assert not load_config(tmp_path).is_new

    def test_malformed_config_propagates(self, tmp_path):
        """Test a broken config file raises instead of loading empty."""
        (tmp_path / ".versionscope.toml").write_text("[tools\n")
        with pytest.raises(ConfigFileError):
            load_config(tmp_path)

    def test_read_legacy_file(self, tmp_path):
        """Test legacy lines are parsed and malformed ones skipped."""
        path = tmp_path / ".tool-versions"
        path.write_text("java 21 extra\nnodejs   20\n\n")
        assert read_legacy_file(path) == {"nodejs": "20"}
