"""
Formula Registry — fórmulas nomeadas usadas pelos passos de cálculo.

Cada fórmula é uma função pura (item, parâmetros) → float.
O registro é validado na construção; referências a fórmulas
desconhecidas são rejeitadas na admissão da regra.
"""

from dataclasses import dataclass, field
from typing import Callable

from apuracao.core.entities.line_item import LineItem


FormulaFn = Callable[[LineItem, list[float]], float]


@dataclass(frozen=True)
class Formula:
    """Uma fórmula registrada."""
    name: str
    fn: FormulaFn
    arity: int = 0                           # nº mínimo de parâmetros
    percent_params: tuple[int, ...] = ()     # índices que devem estar em [0, 100]
    description: str = ""


@dataclass
class FormulaRegistry:
    """Registro de fórmulas indexado por id."""
    _formulas: dict[str, Formula] = field(default_factory=dict)

    def register(self, formula: Formula) -> None:
        self._validate_one(formula)
        self._formulas[formula.name] = formula

    def get(self, name: str) -> Formula | None:
        return self._formulas.get(name)

    def names(self) -> list[str]:
        return sorted(self._formulas)

    def __contains__(self, name: str) -> bool:
        return name in self._formulas

    def __len__(self) -> int:
        return len(self._formulas)

    def validate(self) -> None:
        """Valida todas as fórmulas registradas (chamado na inicialização)."""
        for formula in self._formulas.values():
            self._validate_one(formula)

    @staticmethod
    def _validate_one(formula: Formula) -> None:
        if not formula.name:
            raise ValueError("Formula without name")
        if not callable(formula.fn):
            raise ValueError(f"Formula {formula.name} is not callable")
        if formula.arity < 0:
            raise ValueError(f"Formula {formula.name} has negative arity")
        bad = [i for i in formula.percent_params if i >= formula.arity]
        if bad:
            raise ValueError(f"Formula {formula.name}: percent params {bad} beyond arity {formula.arity}")


def _substitution_base_or_tax_base(item: LineItem) -> float:
    return item.substitution_base or item.tax_base


BUILTIN_FORMULAS: tuple[Formula, ...] = (
    # ── Base de cálculo ──
    Formula("halveBase", lambda item, p: item.tax_base * 0.5,
            description="Base atual reduzida a 50%"),
    Formula("base_reduzida_50", lambda item, p: item.operation_value * 0.5,
            description="Base = 50% do valor da operação"),
    Formula("reduceBase", lambda item, p: item.tax_base * (1 - p[0] / 100), arity=1, percent_params=(0,),
            description="Reduz a base atual em p0%"),
    Formula("reduceOperationValue", lambda item, p: item.operation_value * (1 - p[0] / 100), arity=1,
            percent_params=(0,), description="Base = valor da operação reduzido em p0%"),
    Formula("operationValue", lambda item, p: item.operation_value,
            description="Base = valor da operação"),

    # ── Alíquotas ──
    Formula("fixedRate", lambda item, p: p[0], arity=1, percent_params=(0,),
            description="Alíquota fixa p0%"),
    Formula("aliquota_icms_18", lambda item, p: 18.0),
    Formula("aliquota_icms_12", lambda item, p: 12.0),
    Formula("aliquota_icms_7", lambda item, p: 7.0),

    # ── Valores ──
    Formula("fixedValue", lambda item, p: p[0], arity=1, description="Valor fixo p0"),
    Formula("baseTimesRate", lambda item, p: item.tax_base * item.rate / 100,
            description="Imposto = base × alíquota"),
    Formula("percentOf", lambda item, p: p[0] * p[1] / 100, arity=2, percent_params=(1,),
            description="p1% de p0"),
    Formula("presumedCredit", lambda item, p: item.tax_base * p[0] / 100, arity=1, percent_params=(0,),
            description="Crédito presumido de p0% sobre a base"),
    Formula("zero", lambda item, p: 0.0, description="Isenção"),

    # ── CIAP / PROTEGE ──
    Formula("ciapCredit", lambda item, p: item.tax_base * item.rate / 100,
            description="Crédito CIAP = base × alíquota"),
    Formula("protegeSurcharge",
            lambda item, p: item.tax_base * (p[0] if p else item.rate) / 100,
            description="PROTEGE = base × alíquota (ou p0% quando informado)"),

    # ── Substituição tributária ──
    Formula("st_18", lambda item, p: 18.0),
    Formula("substitutionBase", lambda item, p: item.tax_base * (1 + p[0] / 100), arity=1,
            description="Base ST = base × (1 + MVA p0%)"),
    Formula("substitutionAmount",
            lambda item, p: _substitution_base_or_tax_base(item) * item.substitution_rate / 100,
            description="Valor ST = base ST × alíquota ST"),

    # ── DIFAL ──
    Formula("difal_4", lambda item, p: 4.0),
    Formula("interstateDifferential", lambda item, p: max(item.tax_base * (p[0] - p[1]) / 100, 0.0),
            arity=2, percent_params=(0, 1),
            description="DIFAL = base × (alíquota interna p0 − interestadual p1)"),
)


def default_registry() -> FormulaRegistry:
    """Registro com as fórmulas embutidas, já validado."""
    registry = FormulaRegistry()
    for formula in BUILTIN_FORMULAS:
        registry.register(formula)
    registry.validate()
    return registry
