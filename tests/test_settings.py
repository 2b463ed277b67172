from config.settings import Settings, get_settings


def test_settings_from_env(monkeypatch):
    monkeypatch.setenv("MISSING_CASH_POLICY", "synthesize")
    monkeypatch.setenv("MAX_RECOMMENDATIONS", "3")
    monkeypatch.setenv("POINTS_SOURCES", '["Amex", "Citi"]')
    monkeypatch.setenv("PRIMARY_PARTNER_AIRLINES", "BA, IB, AY")

    cfg = get_settings()
    assert isinstance(cfg, Settings)
    assert cfg.seats_aero_api_key == "test-seats-aero-key"
    assert cfg.missing_cash_policy == "synthesize"
    assert cfg.max_recommendations == 3
    assert cfg.points_sources == ["Amex", "Citi"]
    assert cfg.primary_partner_airlines == ["BA", "IB", "AY"]


def test_settings_defaults():
    cfg = get_settings()
    assert cfg.cad_to_usd == 0.73
    assert cfg.tax_cap_fraction == 0.1
    assert cfg.missing_cash_policy == "drop"
    assert cfg.primary_partner_programs == ["aeroplan"]
    assert str(cfg.amadeus_base_url).startswith("https://test.api.amadeus.com")


def test_tax_cap_can_be_disabled_from_env(monkeypatch):
    for raw in ("", "null", "none", "None", "off"):
        monkeypatch.setenv("TAX_CAP_FRACTION", raw)
        assert Settings().tax_cap_fraction is None

    monkeypatch.setenv("TAX_CAP_FRACTION", "0.2")
    assert Settings().tax_cap_fraction == 0.2
