# ------------------------------
# Argument Validation
# ------------------------------

from abc import ABC, abstractmethod
from typing import Any, List, Optional, Tuple
import argparse
import os


class ValidationRule(ABC):
    """Base class for validation rules"""

    @abstractmethod
    def validate(self, args: Any) -> Tuple[bool, str]:
        """
        Validate arguments and return (is_valid, error_message)
        """
        pass


class PositiveNumberRule(ValidationRule):
    """Validate that a field is a positive number"""

    def __init__(self, field_name: str):
        self.field_name = field_name

    def validate(self, args: Any) -> Tuple[bool, str]:
        value = getattr(args, self.field_name, None)
        if value is not None and (not isinstance(value, (int, float)) or isinstance(value, bool) or value <= 0):
            return False, f"--{self.field_name} must be > 0"
        return True, ""


class IntegerRule(ValidationRule):
    """Validate that a field is an integer"""

    def __init__(self, field_name: str, min_value: Optional[int] = None):
        self.field_name = field_name
        self.min_value = min_value

    def validate(self, args: Any) -> Tuple[bool, str]:
        value = getattr(args, self.field_name, None)
        if value is not None:
            if not isinstance(value, int) or isinstance(value, bool):
                return False, f"--{self.field_name} must be an integer"
            if self.min_value is not None and value < self.min_value:
                return False, f"--{self.field_name} must be >= {self.min_value}"
        return True, ""


class NumberRangeRule(ValidationRule):
    """Rule for validating numeric values within a range."""

    def __init__(self, field_name: str, min_value: Optional[float] = None, max_value: Optional[float] = None,
                 exclusive_min: bool = False, exclusive_max: bool = False):
        self.field_name = field_name
        self.min_value = min_value
        self.max_value = max_value
        self.exclusive_min = exclusive_min
        self.exclusive_max = exclusive_max

    def validate(self, args: Any) -> Tuple[bool, str]:
        value = getattr(args, self.field_name, None)
        if value is None:
            return True, ""

        try:
            num_value = float(value)
        except (ValueError, TypeError):
            return False, f"--{self.field_name} must be a number"

        if self.min_value is not None:
            too_low = num_value <= self.min_value if self.exclusive_min else num_value < self.min_value
            if too_low:
                return False, f"--{self.field_name} must be {'greater than' if self.exclusive_min else 'at least'} {self.min_value}"

        if self.max_value is not None:
            too_high = num_value >= self.max_value if self.exclusive_max else num_value > self.max_value
            if too_high:
                return False, f"--{self.field_name} must be {'less than' if self.exclusive_max else 'at most'} {self.max_value}"

        return True, ""


class ExistingPathRule(ValidationRule):
    """Validate that a file argument points to an existing path"""

    def __init__(self, field_name: str):
        self.field_name = field_name

    def validate(self, args: Any) -> Tuple[bool, str]:
        value = getattr(args, self.field_name, None)
        if value is not None and not os.path.exists(str(value)):
            return False, f"--{self.field_name}: file not found: {value}"
        return True, ""


class ValidationEngine:
    """Engine for running validation rules"""

    def __init__(self):
        self.rules: List[ValidationRule] = []

    def add_rule(self, rule: ValidationRule) -> 'ValidationEngine':
        self.rules.append(rule)
        return self

    def errors(self, args: Any) -> List[str]:
        """All failing rule messages, in rule order"""
        out = []
        for rule in self.rules:
            is_valid, error_msg = rule.validate(args)
            if not is_valid:
                out.append(error_msg)
        return out

    def validate(self, args: Any, parser: argparse.ArgumentParser) -> Any:
        """Validate arguments; the first failure is reported through parser.error"""
        errors = self.errors(args)
        if errors:
            parser.error(errors[0])
        return args


def create_default_validator() -> ValidationEngine:
    """Create a validator with the rules shared by all commands"""
    return (ValidationEngine()
            .add_rule(PositiveNumberRule("conservation_rtol"))
            .add_rule(NumberRangeRule("conservation_rtol", max_value=1e-3))
            .add_rule(IntegerRule("workers", min_value=1))
            .add_rule(ExistingPathRule("catalog"))
            .add_rule(ExistingPathRule("observations"))
            .add_rule(ExistingPathRule("tips"))
            .add_rule(ExistingPathRule("p_uturn"))
            .add_rule(ExistingPathRule("p_sharp")))


def validate_args(args: Any, parser: argparse.ArgumentParser) -> Any:
    """Validate CLI arguments using the default rules"""
    return create_default_validator().validate(args, parser)
