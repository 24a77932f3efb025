"""Evaluation of injection conditions."""

import logging
from typing import Any, Dict, Iterable, Mapping, Optional

from jinja2 import StrictUndefined, TemplateError as JinjaTemplateError
from jinja2.sandbox import SandboxedEnvironment

logger = logging.getLogger(__name__)


class ConditionError(Exception):
    """A condition could not be compiled or evaluated."""


class ConditionEvaluator:
    """
    Evaluates injection conditions as sandboxed Jinja2 expressions.

    Conditions see each resolved type parameter by name (``TYPE == 'euint64'``)
    plus ``type_params``, ``base``, ``modules`` and ``has_module(id)``.
    Undefined names are errors rather than silently false.
    """

    def __init__(self):
        self.env = SandboxedEnvironment(undefined=StrictUndefined)
        self._compiled: Dict[str, Any] = {}

    def build_context(
        self,
        type_params: Mapping[str, str],
        modules: Iterable[str],
        base: str,
    ) -> Dict[str, Any]:
        selected = list(modules)
        context: Dict[str, Any] = dict(type_params)
        context.update({
            "type_params": dict(type_params),
            "modules": selected,
            "base": base,
            "has_module": lambda module_id: module_id in selected,
        })
        return context

    def evaluate(self, condition: Optional[str], context: Mapping[str, Any]) -> bool:
        """
        Evaluate a condition. Empty conditions are always true.

        Raises:
            ConditionError: If the expression is invalid or references
                an unknown name
        """
        if condition is None or not condition.strip():
            return True

        try:
            expression = self._compiled.get(condition)
            if expression is None:
                expression = self.env.compile_expression(condition, undefined_to_none=False)
                self._compiled[condition] = expression
            result = bool(expression(**context))
        except (JinjaTemplateError, TypeError, ArithmeticError, ValueError) as e:
            raise ConditionError(f"Invalid condition '{condition}': {e}") from e

        logger.debug("Condition %r evaluated to %r", condition, result)
        return result
