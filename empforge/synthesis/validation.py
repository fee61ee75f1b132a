import logging
import time
from typing import Any, Callable

from empforge.lexicon import DepartmentCatalog, load_catalog
from empforge.model import EmployeeForm, ValidationIssue, ValidationResult, ValidationWarning

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ('name', 'department', 'system_prompt', 'personality')
PROMPT_WARNING_LENGTH = 4000

_REQUIRED_ERRORS = (
    ValidationIssue('name', '员工姓名不能为空', fix_suggestion='请输入员工姓名'),
    ValidationIssue('department', '所属部门不能为空', fix_suggestion='请选择所属部门'),
    ValidationIssue('system_prompt', '系统提示词不能为空', fix_suggestion='请输入系统提示词'),
)


def completeness_ratio(form: EmployeeForm) -> float:
    """Share of the required fields that hold a value, in [0, 1]."""
    return sum(1 for name in REQUIRED_FIELDS if form.filled(name)) / len(REQUIRED_FIELDS)


def timestamp_suffix(clock: Callable[[], float]) -> str:
    """Last four digits of the millisecond timestamp."""
    return str(int(clock() * 1000))[-4:]


class ConfigValidator:
    """Scores a form and reports what blocks it from being usable.

    Validation only reads the form, so validating an already valid form
    again always gives the same report.
    """

    def validate(self, form: EmployeeForm) -> ValidationResult:
        errors = tuple(issue for issue in _REQUIRED_ERRORS if not form.filled(issue.field))

        warnings = []
        if form.system_prompt and len(form.system_prompt) > PROMPT_WARNING_LENGTH:
            warnings.append(ValidationWarning(
                'system_prompt', '系统提示词过长，可能影响性能', impact='medium', suggestion='建议启用压缩策略或简化内容'
            ))
        if not form.allowed_tools:
            warnings.append(ValidationWarning(
                'allowed_tools', '未配置任何工具', impact='low', suggestion='建议配置相关工具提升能力'
            ))

        error_count = sum(1 for e in errors if e.severity == 'error')
        score = max(0, 100 - error_count * 30 - len(warnings) * 10)
        result = ValidationResult(
            is_valid=not errors,
            errors=errors,
            warnings=tuple(warnings),
            score=score,
            completeness=completeness_ratio(form) * 100,
            recommendations=self._recommendations(form, errors, warnings),
        )
        logger.debug(f"Validated form: valid={result.is_valid}, score={score}")
        return result

    @staticmethod
    def _recommendations(form: EmployeeForm, errors, warnings) -> tuple[str, ...]:
        recommendations = []
        if errors:
            recommendations.append('请先修复所有错误项再提交配置')
        if warnings:
            recommendations.append('建议关注警告项以获得更好的性能表现')
        if not form.example_dialogues:
            recommendations.append('建议添加一些示例对话以提升AI表现')
        if not form.initial_faqs:
            recommendations.append('建议预设一些常见问题以提升响应效率')
        return tuple(recommendations)


class ConfigRepairer:
    """One deterministic pass that fills missing required fields."""

    def __init__(self, *, catalog: DepartmentCatalog | None = None, clock: Callable[[], float] = time.time):
        self.catalog = catalog or load_catalog()
        self.clock = clock

    def repair(self, form: EmployeeForm, validation: ValidationResult) -> dict[str, Any] | None:
        """Return a patch for the fixable errors, or ``None`` when nothing could be fixed."""
        generic = self.catalog.generic
        department = form.department or generic.department
        fixes: dict[str, Any] = {}
        for error in validation.errors:
            if form.filled(error.field):
                continue
            match error.field:
                case 'name':
                    fixes['name'] = f"AI-{department}"
                case 'employee_number':
                    fixes['employee_number'] = f"{self.catalog.code(department)}{timestamp_suffix(self.clock)}"
                case 'system_prompt':
                    fixes['system_prompt'] = generic.system_prompt
                case 'department':
                    fixes['department'] = generic.department
                case _:
                    logger.info(f"No repair rule for field '{error.field}'")
        if not fixes:
            return None
        logger.info(f"Repaired fields: {', '.join(fixes)}")
        return fixes
