from __future__ import annotations

from typing import Dict, Type

from .models import RuleType
from .rule import RuleStrategy


class StrategyRegistry:
    def __init__(self):
        self._strategies: Dict[RuleType, Type[RuleStrategy]] = {}

    def register(self, strategy_cls: Type[RuleStrategy]) -> None:
        rule_type = getattr(strategy_cls, "rule_type", None)
        if not rule_type:
            raise ValueError("Strategy class missing rule_type")
        if rule_type in self._strategies:
            raise ValueError(f"Duplicate strategy registered for rule type: {rule_type.value}")
        self._strategies[rule_type] = strategy_cls

    def create_all(self) -> Dict[RuleType, RuleStrategy]:
        return {rule_type: cls() for rule_type, cls in self._strategies.items()}


registry = StrategyRegistry()


def register_strategy(strategy_cls: Type[RuleStrategy]) -> Type[RuleStrategy]:
    registry.register(strategy_cls)
    return strategy_cls
