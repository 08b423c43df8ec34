import pytest
from pydantic import ValidationError

from flowsim.config import ArrivalMode, CalendarSettings, Settings, SimulationConfig, get_settings
from flowsim.core import SimulationConfigError


class TestSimulationConfig:

    def test_defaults(self):
        config = SimulationConfig()
        assert config.minutes_per_tick == 15
        assert config.peak_boost_percent == 70
        assert config.arrival_mode == ArrivalMode.PERIOD
        assert config.fast_mode is True
        assert config.instance_count == 20
        assert config.team_size is None

    def test_rule_store_aliases(self):
        config = SimulationConfig.model_validate({
            "system": " Purchase ",
            "startEvents": 5,
            "speedMinutesPerTick": 30,
            "peakSpeedPercent": 10,
            "arrival_mode": "trendUp",
        })
        assert config.system == "Purchase"
        assert config.instance_count == 5
        assert config.minutes_per_tick == 30
        assert config.peak_boost_percent == 10
        assert config.arrival_mode == ArrivalMode.TREND_UP

    @pytest.mark.parametrize("value", [None, ""])
    def test_missing_arrival_mode_means_bulk(self, value):
        assert SimulationConfig(arrival_mode=value).arrival_mode == ArrivalMode.NONE

    @pytest.mark.parametrize("given, expected", [(0, 1), (35, 35), (150, 100)])
    def test_avg_completion_clamped(self, given, expected):
        assert SimulationConfig(avg_completion_pct=given).avg_completion_pct == expected

    @pytest.mark.parametrize("given, expected", [(-5, 0), (20, 20), (80, 50)])
    def test_variability_clamped(self, given, expected):
        assert SimulationConfig(completion_variability=given).completion_variability == expected

    def test_uniform_max_raised_to_min(self):
        config = SimulationConfig(arrival_uniform_min=50, arrival_uniform_max=20)
        assert config.arrival_uniform_max == 50

    def test_times_are_normalised(self):
        config = SimulationConfig(work_start="8:00", peak_end="17:05")
        assert config.work_start == "08:00"
        assert config.peak_end == "17:05"
        assert config.peak_window == (600, 1025)

    def test_invalid_time_rejected(self):
        with pytest.raises(ValidationError):
            SimulationConfig(work_end="25:00")

    def test_invalid_team_size_rejected(self):
        with pytest.raises(ValidationError):
            SimulationConfig(team_size=0)

    def test_create_reports_config_error(self):
        with pytest.raises(SimulationConfigError):
            SimulationConfig.create(minutes_per_tick=0)

    def test_calendar(self):
        calendar = SimulationConfig(work_start="07:30", skip_weekends=False, rest_day=0).calendar
        assert calendar.start_minute == 450
        assert calendar.skip_weekends is False
        assert calendar.rest_day == 0


class TestSettings:

    def test_defaults(self):
        settings = Settings()
        assert settings.app_name == "FlowSim"
        assert settings.event_log_limit == 500
        assert settings.series_limit == 240
        assert settings.calendar.weekend_days == [5, 6]

    def test_log_level_uppercased(self):
        assert Settings(log_level="debug").log_level == "DEBUG"

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("FLOWSIM_EVENT_LOG_LIMIT", "7")
        monkeypatch.setenv("FLOWSIM_TICK_INTERVAL_SECONDS", "0.5")
        settings = Settings.from_env()
        assert settings.event_log_limit == 7
        assert settings.tick_interval_seconds == 0.5

    def test_calendar_from_environment(self, monkeypatch):
        monkeypatch.setenv("FLOWSIM_CALENDAR_WORK_START", "08:30")
        monkeypatch.setenv("FLOWSIM_CALENDAR_WEEKEND_DAYS", "[4, 5]")
        calendar = CalendarSettings()
        assert calendar.work_start == "08:30"
        assert calendar.to_calendar().weekend_days == (4, 5)

    def test_invalid_weekend_day_rejected(self):
        with pytest.raises(ValidationError):
            CalendarSettings(weekend_days=[7])

    def test_simulation_config_inherits_calendar(self, monkeypatch):
        monkeypatch.setenv("FLOWSIM_CALENDAR_WORK_END", "17:00")
        settings = Settings(random_seed=5)
        config = settings.simulation_config(system="Purchase", fast_mode=False)
        assert config.work_end == "17:00"
        assert config.random_seed == 5
        assert config.fast_mode is False

    def test_simulation_config_errors(self):
        with pytest.raises(SimulationConfigError):
            Settings().simulation_config(instance_count=-1)

    def test_get_settings_is_cached(self, monkeypatch):
        get_settings.cache_clear()
        monkeypatch.setenv("FLOWSIM_SERIES_LIMIT", "12")
        try:
            first = get_settings()
            assert first.series_limit == 12
            assert get_settings() is first
        finally:
            get_settings.cache_clear()
