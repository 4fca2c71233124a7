from configparser import ConfigParser
from typing import Dict, List, Optional

from .configuration_schema import ConfigurationSchema, ConfigurationField, ConfigValueError, OptionType

__all__ = ["Configuration"]


class Configuration:
    """All the config options for a relaxation run.

    Values come from the content of an INI file, validated against a :class:`ConfigurationSchema`. Each schema field
    becomes an attribute of this object. Values given in `overrides` (typically from the command line) take precedence
    over the ones found in the file.
    """

    sections: Dict[str, List[str]]

    def __init__(
        self,
        cfg_content: str,
        schema: ConfigurationSchema,
        overrides: Optional[Dict[str, str]] = None,
    ):
        self.sections = {}
        self.schema = schema
        self.config_content = cfg_content
        self.parser = ConfigParser()
        self.parser.read_string(self.config_content)

        for name, value in (overrides or {}).items():
            field = schema.field(name)
            if not self.parser.has_section(field.section):
                self.parser.add_section(field.section)
            self.parser.set(field.section, field.name, str(value))

        # Fields are sorted so that dependencies are always read first
        for field in schema.fields:
            try:
                self._get_option(field)
            except ConfigValueError:
                raise
            except Exception as e:
                raise ValueError(f"Error reading option {field.name}") from e

        self.state_version = schema.version

    def _get_option(self, field: ConfigurationField) -> Optional[OptionType]:
        if field.dependency is not None:
            dep_name, dep_values = field.dependency
            if not hasattr(self, dep_name):
                raise ValueError(f"Cannot validate dependency {dep_name}. dependency not found")

            if getattr(self, dep_name) not in dep_values:
                return None

        value = field.read(self.parser)
        setattr(self, field.name, value)
        self.sections.setdefault(field.section, []).append(field.name)

        return value

    def __str__(self):
        out = "Configuration: \n"
        for section_name, section_options in self.sections.items():
            out += "\n"
            out += f'  {" " + section_name + " ":-^80s}  '
            long_options = {}
            i = 0
            for option in section_options:
                val = str(getattr(self, option))

                if len(option) < 26 and len(val) < 14:
                    if i % 2 == 0:
                        out += "\n"
                    out += f" | {option:25s}: {val:13s}"
                    i += 1
                else:
                    long_options[option] = val
            if i % 2 == 1:
                out += " |"

            for name, val in long_options.items():
                out += f"\n | {name:25s}: {val}"
            out += "\n"

        return out

    # --- START type hints ---
    boundary_value: float
    log_level: str
    num_iterations: int
    output_density: int
    output_dir: str
    output_enabled: bool
    output_freq: int
    output_prefix: str
    plot_file: str
    tile_edge_length: int
    # --- END type hints ---
