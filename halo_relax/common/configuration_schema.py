from configparser import ConfigParser, NoSectionError, NoOptionError
import copy
import json
import os
from typing import Any, Callable, List, Optional, Type, TypeVar, Union

from .eval_expr import eval_expr
from .readfile import readfile

__all__ = [
    "ConfigFieldRange",
    "ConfigurationField",
    "ConfigurationSchema",
    "ConfigValueError",
    "OptionType",
    "default_schema_path",
    "load_default_schema",
]


class ConfigValueError(ValueError):
    """Custom exception for config schema/options"""


class CaseSensitiveStr(str):
    """Custom string option type"""


CaseSensitiveStr.__name__ = "cs-str"


class LowerCaseStr(str):
    """Custom string option type (always lower case)"""

    def __new__(cls, val: str):
        return super().__new__(cls, val.lower())


LowerCaseStr.__name__ = "lc-str"


def str_to_bool(val: str) -> bool:
    return bool(int(val))


str_to_bool.__name__ = "bool"

OptionType = TypeVar("OptionType", bound=Union[str, CaseSensitiveStr, int, float, List[int], List[float], bool])
_T = TypeVar("_T", str, dict, list)

_numerical_types = (int, float)

default_schema_path = os.path.join(os.path.dirname(os.path.realpath(__file__)), "..", "config", "config-format.json")


def needs_evaluation(attribute: Any, attribute_type: Type) -> bool:
    """Whether the given attribute is a string expression that must be evaluated to get a number."""
    if not isinstance(attribute, str) or attribute_type not in _numerical_types:
        return False
    try:
        float(attribute)
        return False
    except ValueError:
        return True


def make_str(items) -> str:
    """Create a string from a set of items, each with their own fixed length. If an
    item is larger than its associated length, it will take space from the following items."""
    result = ""
    desired_length = 0
    for text, length in items:
        desired_length += length
        result += text + " "
        num_missing = desired_length - len(result)
        if num_missing > 0:
            result += f"{'':{num_missing}s}"

    return result


class ConfigFieldRange:
    """Define acceptable values for a certain field. Also generates a function to verify that a value falls within
    the range."""

    def __init__(
        self, min_value: OptionType = None, max_value: OptionType = None, selectables: List[OptionType] = None
    ):
        self.min_value = min_value
        self.max_value = max_value
        self.selectables = selectables

        if selectables is not None and not (min_value is None and max_value is None):
            raise ConfigValueError("You cannot have both a min or a max, and a selectable pool of values")

        if self.min_value is not None and self.max_value is not None and self.min_value > self.max_value:
            raise ConfigValueError(f"Min value {self.min_value} is larger than max {self.max_value}")

    def _make_base_validate(self) -> Optional[Callable[[Any], bool]]:
        if self.selectables is not None:
            return lambda a: a in self.selectables
        if self.min_value is not None and self.max_value is not None:
            return lambda a: self.min_value <= a <= self.max_value
        if self.min_value is not None:
            return lambda a: a >= self.min_value
        if self.max_value is not None:
            return lambda a: a <= self.max_value

        return None

    def make_validate(self) -> Callable[[Any], bool]:
        """Generate a function that checks whether a value (or list of values) falls within the range."""
        base_function = self._make_base_validate()
        if base_function is None:
            return lambda _: True

        def validate(a) -> bool:
            if isinstance(a, list):
                return all(base_function(x) for x in a)
            return base_function(a)

        return validate

    def __str__(self):
        if self.selectables is not None:
            sel_str = ", ".join(str(s) for s in self.selectables)
            return f"{{{sel_str}}}"

        if self.min_value is not None or self.max_value is not None:
            min_str = "-inf" if self.min_value is None else f"{self.min_value}"
            max_str = "inf" if self.max_value is None else f"{self.max_value}"
            return f"[{min_str}, {max_str}]"

        return ""


class ConfigurationField:
    """
    An option that can be set in a configuration file. Has a name, a type, a section and potentially
    a default value and range of possible values. Whether it is read at all can depend on the value of
    another option.
    """

    def __init__(
        self,
        field_name: str,
        field_section: str,
        field_default: Optional[OptionType],
        field_type: Type[OptionType],
        is_list: bool,
        valid_range: ConfigFieldRange,
        dependency: Optional[tuple[str, List[OptionType]]],
        description: Optional[str],
    ):
        self.name = field_name
        self.section = field_section
        self.field_default = field_default
        self.type = field_type
        self.is_list = is_list
        self.valid_range = valid_range
        self.validate = self.valid_range.make_validate()
        self.dependency = dependency
        self.description = description

        if field_default is not None and not self.validate(self.field_default):
            raise ValueError(
                f"Default value '{self.field_default}' of field '{self.name}' does not respect "
                f"its valid range: {self.valid_range}"
            )

    def _convert(self, value: str) -> OptionType:
        return self.type(eval_expr(value) if needs_evaluation(value, self.type) else value)

    def _read_single(self, parser: ConfigParser) -> OptionType:
        return self._convert(parser.get(self.section, self.name))

    def _read_list(self, parser: ConfigParser) -> List[OptionType]:
        raw = parser.get(self.section, self.name)
        try:
            return [self._convert(raw)]
        except (ValueError, TypeError, SyntaxError):
            return [self._convert(x) if isinstance(x, str) else self.type(x) for x in json.loads(raw)]

    def read(self, parser: ConfigParser) -> OptionType:
        """Read this field from the given parser and verify that it falls within its valid range."""

        try:
            if self.is_list:
                value = self._read_list(parser)
            else:
                value = self._read_single(parser)

        except (NoOptionError, NoSectionError) as e:
            if self.field_default is None:
                raise ConfigValueError(f"Must specify a value for option '{self.name}'") from e

            value = copy.deepcopy(self.field_default)

        except (ValueError, TypeError, SyntaxError) as e:
            raise ConfigValueError(f"Could not read option '{self.name}': {e}") from e

        if not self.validate(value):
            raise ConfigValueError(
                f"Value '{value}' does not fall in acceptable range for field '{self.name}': {self.valid_range}"
            )

        return value

    @staticmethod
    def header(section_name: str) -> str:
        return make_str(
            [(f"[{section_name}]", 24), ("Type", 8), ("Default", 12), ("Valid range", 28), ("Description", 0)]
        )

    def __str__(self):
        return make_str(
            [
                (self.name, 24),
                (self.type.__name__, 8),
                ("[none]" if self.field_default is None else str(self.field_default), 12),
                (str(self.valid_range), 28),
                ("" if self.description is None else self.description, 0),
            ]
        )


class ConfigurationSchema:
    """A description of the options that can be configured in a config file. This descriptions includes
    option names, their default value, the range of acceptable values and some basic dependency between
    options.

    The schema is loaded from a JSON description. It contains a list of sections, each containing a list of fields.
    """

    def __init__(self, json_str: str):
        try:
            format_obj = json.loads(json_str)
        except json.JSONDecodeError as e:
            raise ValueError("The configuration schema file is badly formatted. It must be a valid JSON file") from e

        self.raw_string = json_str
        self.version = self.__get_attribute("version", format_obj, str)

        fields: list[ConfigurationField] = []
        for section in self.__get_attribute("sections", format_obj, dict, is_list=True):
            fields.extend(self.__extract_section(section))

        names = [f.name for f in fields]
        duplicates = {n for n in names if names.count(n) > 1}
        if duplicates:
            raise ConfigValueError(f"Duplicate field name(s) in schema: {sorted(duplicates)}")

        # Fields with a dependency are read after everything else
        self.fields = [f for f in fields if f.dependency is None] + [f for f in fields if f.dependency is not None]

    def field(self, name: str) -> ConfigurationField:
        for f in self.fields:
            if f.name == name:
                return f
        raise ConfigValueError(f"Unknown option '{name}'")

    def __get_attribute(
        self,
        attribute_name: str,
        attributes: dict,
        attribute_type: Type[_T],
        optional: bool = False,
        is_list: bool = False,
    ) -> Optional[_T]:
        """Retrieve an attribute from the given dictionary as the specified type. Raise an exception if
        the attribute does not exist (if not optional) or if it cannot be converted to the specified type."""

        if attribute_name not in attributes:
            if not optional:
                raise KeyError(f"'{attribute_name}' field not found in the dictionary {attributes}")
            return None

        attribute = attributes[attribute_name]

        if is_list:
            if not isinstance(attribute, list):
                attribute = [attribute]
            if issubclass(attribute_type, (list, dict)):
                return attribute
            return [attribute_type(eval_expr(a) if needs_evaluation(a, attribute_type) else a) for a in attribute]

        if needs_evaluation(attribute, attribute_type):
            return attribute_type(eval_expr(attribute))

        return attribute_type(attribute)

    def __extract_section(self, section: dict) -> list[ConfigurationField]:
        section_name = self.__get_attribute("name", section, str)
        field_list = self.__get_attribute("fields", section, dict, is_list=True)
        return [self.__extract_field(f, section_name) for f in field_list]

    def __get_range(self, field: dict, field_type: Type) -> ConfigFieldRange:
        min_value = self.__get_attribute("min", field, field_type, optional=True)
        max_value = self.__get_attribute("max", field, field_type, optional=True)
        selectables = self.__get_attribute("selectables", field, field_type, optional=True, is_list=True)

        return ConfigFieldRange(min_value, max_value, selectables)

    def __extract_field(self, field: dict, field_section: str) -> ConfigurationField:
        field_name = self.__get_attribute("name", field, str)
        field_type_value = self.__get_attribute("type", field, str)

        classes = {
            "int": int,
            "float": float,
            "bool": str_to_bool,
            "case-sensitive-str": CaseSensitiveStr,
            "cs-str": CaseSensitiveStr,
            "lower-case-str": LowerCaseStr,
            "lc-str": LowerCaseStr,
            "str": LowerCaseStr,
        }
        is_list = field_type_value.startswith("list-")
        type_name = field_type_value[5:] if is_list else field_type_value
        if type_name not in classes:
            raise ConfigValueError(f"Field {field_name} has unknown type '{field_type_value}'")
        field_type = classes[type_name]

        try:
            default_type = str if field_type is str_to_bool else field_type
            field_default = self.__get_attribute("default", field, default_type, optional=True, is_list=is_list)
            if field_default is not None and field_type is str_to_bool:
                field_default = [str_to_bool(d) for d in field_default] if is_list else str_to_bool(field_default)
            valid_range = self.__get_range(field, field_type)

            dependency = None
            dep = self.__get_attribute("dependency", field, dict, optional=True)
            if dep is not None:
                dep_field = self.__get_attribute("name", dep, str)
                dep_values = self.__get_attribute("values", dep, list, is_list=True)
                dependency = dep_field, dep_values

            description = self.__get_attribute("description", field, str, optional=True)

        except Exception as e:
            raise ValueError(f"Field {field_name}") from e

        return ConfigurationField(
            field_name, field_section, field_default, field_type, is_list, valid_range, dependency, description
        )

    def __str__(self):
        sections: dict[str, list[ConfigurationField]] = {}
        for field in self.fields:
            sections.setdefault(field.section, []).append(field)

        return "\n".join(
            f"{ConfigurationField.header(title)}\n  " + "\n  ".join(str(f) for f in s) for title, s in sections.items()
        )


def load_default_schema() -> ConfigurationSchema:
    return ConfigurationSchema(readfile(default_schema_path))
