import pytest

from apuracao.core.entities.rule import CalculationKind, CalculationStep, ResultTarget
from apuracao.core.rules.calculation_engine import CalculationEngine, resolve_parameter
from apuracao.core.rules.formulas import Formula, FormulaRegistry, default_registry

from conftest import make_item, make_rule, tax_step


@pytest.fixture
def engine(registry):
    return CalculationEngine(registry)


def test_halve_base(engine):
    item = make_item(tax_base=1000.0)
    result = engine.apply_rule(item, make_rule("r1", name="Redução 50%"))

    assert result.tax_base == 500.0
    assert result.applied_rule_ids == ("r1",)
    assert "Rule applied: Redução 50%" in result.notes
    assert item.tax_base == 1000.0


def test_passos_em_cadeia_enxergam_o_passo_anterior(engine):
    rule = make_rule(calculations=[
        CalculationStep(CalculationKind.TAX_BASE, "reduceBase", ("20",)),
        CalculationStep(CalculationKind.RATE, "fixedRate", ("12",)),
        tax_step(),
    ])
    result = engine.apply_rule(make_item(tax_base=1000.0), rule)

    assert result.tax_base == 800.0
    assert result.rate == 12.0
    assert result.tax_amount == pytest.approx(96.0)


def test_regras_compostas_reduzem_duas_vezes(engine):
    item = make_item(tax_base=1000.0)
    item = engine.apply_rule(item, make_rule("a"))
    item = engine.apply_rule(item, make_rule("b"))
    assert item.tax_base == 250.0
    assert item.applied_rule_ids == ("a", "b")


def test_formula_desconhecida_zera_o_alvo(engine):
    step = CalculationStep(CalculationKind.TAX_BASE, "doesNotExist")
    result = engine.apply_step(make_item(tax_base=1000.0), step)

    assert result.tax_base == 0.0
    assert any("doesNotExist" in w for w in result.warnings)


def test_parametro_nao_resolvido_pula_o_passo(engine):
    step = CalculationStep(CalculationKind.TAX_BASE, "reduceBase", ("metade",))
    result = engine.apply_step(make_item(tax_base=1000.0), step)

    assert result.tax_base == 1000.0
    assert result.warnings


def test_parametro_por_nome_de_campo(engine):
    step = CalculationStep(CalculationKind.CREDIT, "percentOf", ("tax_base", "3"))
    result = engine.apply_step(make_item(tax_base=200.0), step)
    assert result.presumed_credit == pytest.approx(6.0)


def test_alvo_explicito(engine):
    step = CalculationStep(CalculationKind.SUBSTITUTION_TAX, "substitutionBase", ("40",),
                           target=ResultTarget.SUBSTITUTION_BASE)
    result = engine.apply_step(make_item(tax_base=100.0), step)
    assert result.substitution_base == pytest.approx(140.0)


def test_erro_aritmetico_vira_warning():
    registry = FormulaRegistry()
    registry.register(Formula("boom", lambda item, p: 1 / 0))
    engine = CalculationEngine(registry)

    result = engine.apply_step(make_item(), CalculationStep(CalculationKind.TAX_BASE, "boom"))
    assert result.tax_base == 1000.0
    assert "failed" in result.warnings[0]


def test_resolve_parameter():
    item = make_item(rate=18.0)
    assert resolve_parameter(item, "rate") == 18.0
    assert resolve_parameter(item, "12,5") == 12.5
    assert resolve_parameter(item, "7%") == 7.0
    assert resolve_parameter(item, "abc") is None


def test_registro_rejeita_percentual_alem_da_aridade():
    with pytest.raises(ValueError):
        FormulaRegistry().register(Formula("bad", lambda item, p: 0.0, arity=1, percent_params=(1,)))


def test_registro_padrao_tem_formulas_do_prompt():
    registry = default_registry()
    names = ("halveBase", "base_reduzida_50", "aliquota_icms_18", "st_18", "difal_4", "ciapCredit", "protegeSurcharge")
    for name in names:
        assert name in registry


def test_passo_st_deriva_base_e_valor(engine):
    step = CalculationStep(CalculationKind.SUBSTITUTION_TAX, "st_18")
    result = engine.apply_step(make_item(tax_base=1000.0), step)

    assert result.substitution_rate == 18.0
    assert result.substitution_base == 1000.0
    assert result.substitution_amount == pytest.approx(180.0)


def test_passo_st_preserva_base_com_mva(engine):
    rule = make_rule(calculations=[
        CalculationStep(CalculationKind.SUBSTITUTION_TAX, "substitutionBase", ("40",),
                        target=ResultTarget.SUBSTITUTION_BASE),
        CalculationStep(CalculationKind.SUBSTITUTION_TAX, "st_18"),
    ])
    result = engine.apply_rule(make_item(tax_base=100.0), rule)

    assert result.substitution_base == pytest.approx(140.0)
    assert result.substitution_amount == pytest.approx(25.2)


def test_credito_ciap(engine):
    step = CalculationStep(CalculationKind.CREDIT, "ciapCredit")
    result = engine.apply_step(make_item(tax_base=1000.0, rate=12.0), step)
    assert result.presumed_credit == pytest.approx(120.0)


def test_protege_usa_aliquota_do_item_ou_parametro(engine):
    item = make_item(tax_base=1000.0, rate=18.0)

    default = CalculationStep(CalculationKind.CREDIT, "protegeSurcharge", target=ResultTarget.TAX_AMOUNT)
    assert engine.apply_step(item, default).tax_amount == pytest.approx(180.0)

    explicit = CalculationStep(CalculationKind.CREDIT, "protegeSurcharge", ("15",), target=ResultTarget.TAX_AMOUNT)
    assert engine.apply_step(item, explicit).tax_amount == pytest.approx(150.0)
