"""Tests for the activity map query envelope."""

from activitygraph.query.request import (
    ActivityMapQuery,
    EdgeAnnotation,
    Source,
    Step,
    Walk,
    Weighting,
)
from activitygraph.query.time import NOW, QueryTime


class TestActivityMapQuery:
    def test_defaults(self):
        params = ActivityMapQuery().to_params()
        assert params == {
            "from": "-30m",
            "walks": [{"origins": [{"object_type": "all_devices"}], "steps": [{}]}],
        }

    def test_absolute_times_in_milliseconds(self):
        params = ActivityMapQuery(from_=1577836800, until="1577838600").to_params()
        assert params["from"] == 1577836800000
        assert params["until"] == 1577838600000

    def test_until_now_omitted(self):
        assert "until" not in ActivityMapQuery(until=NOW).to_params()
        assert "until" not in ActivityMapQuery(until="now").to_params()

    def test_query_time_objects(self):
        params = ActivityMapQuery(from_=QueryTime.parse("-1d")).to_params()
        assert params["from"] == "-1d"

    def test_weighting_and_annotations(self):
        params = ActivityMapQuery(
            weighting=Weighting.CONNECTIONS,
            edge_annotations=[EdgeAnnotation.PROTOCOLS],
        ).to_params()
        assert params["weighting"] == "connections"
        assert params["edge_annotations"] == ["protocols"]

    def test_specific_origins_and_step_filters(self):
        walk = Walk(
            origins=[Source.device(15), Source.device_group(2)],
            steps=[Step(
                relationships=[{"protocol": "HTTP", "role": "server"}],
                peer_not_in=[Source.device_group(9)],
            )],
        )
        params = ActivityMapQuery(walks=[walk]).to_params()
        assert params["walks"][0]["origins"] == [
            {"object_type": "device", "object_id": 15},
            {"object_type": "device_group", "object_id": 2},
        ]
        step = params["walks"][0]["steps"][0]
        assert step["relationships"] == [{"protocol": "HTTP", "role": "server"}]
        assert step["peer_not_in"] == [{"object_type": "device_group", "object_id": 9}]
        assert "peer_in" not in step
