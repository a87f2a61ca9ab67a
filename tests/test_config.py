from territory_engine.config import Settings


def test_defaults_match_documented_tunables():
    config = Settings(_env_file=None)

    assert config.run_buffer_meters == 50
    assert config.ride_buffer_meters == 100
    assert config.min_area_sqm == 100
    assert config.loop_closure_tolerance_meters == 100
    assert config.decay_grace_days == 7
    assert config.decay_rate_per_day == 0.01
    assert config.decay_floor == 0.5
    assert config.buffer_quad_segs == 8


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("TERRITORY_MIN_AREA_SQM", "250")
    monkeypatch.setenv("TERRITORY_RIDE_BUFFER_METERS", "75")
    monkeypatch.setenv("TERRITORY_BUFFER_QUAD_SEGS", "4")

    config = Settings(_env_file=None)

    assert config.min_area_sqm == 250
    assert config.ride_buffer_meters == 75
    assert config.buffer_quad_segs == 4
