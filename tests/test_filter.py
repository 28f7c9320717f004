"""Test the single-channel filter."""

from guildrelay.gateway import ChannelFilter


class TestChannelFilter:
    def test_matches_configured_channel(self):
        f = ChannelFilter("123")
        assert f.matches("123")
        assert f.matches(123)
        assert not f.matches("456")

    def test_empty_filter_matches_nothing(self):
        f = ChannelFilter()
        assert f.channel_id == ""
        assert not f.matches("")
        assert not f.matches("123")

    def test_load_from_config(self):
        f = ChannelFilter()
        f.load_from_config({"channel_id": 987654321})
        assert f.channel_id == "987654321"
        assert f.matches("987654321")

    def test_load_from_config_without_channel_clears(self):
        f = ChannelFilter("123")
        f.load_from_config({})
        assert not f.matches("123")
