"""Tests for quake_insight.cli module."""

import json
from datetime import date
from unittest.mock import patch

import httpx
import pytest

from quake_insight.catalog import SeismicEvent
from quake_insight.cli import build_parser, main
from quake_insight.errors import DegenerateFitWarning

FIXTURE_EVENTS = [
    SeismicEvent(time=1770903271114, latitude=35.6762, longitude=139.6503, depth=25.0, magnitude=6.3),
    SeismicEvent(time=1770711300000, latitude=-33.4489, longitude=-70.6693, depth=50.0, magnitude=6.7),
]

SEQUENCE_CSV = """\
time,latitude,longitude,depth,magnitude
2026-01-15T12:00:00Z,35.0,139.0,10.0,6.0
2026-01-15T12:02:00Z,35.0,139.0,12.0,3.0
2026-01-15T12:04:00Z,35.0,139.0,11.0,3.0
2026-01-15T12:06:00Z,35.0,139.0,9.0,2.0
2026-01-15T12:08:00Z,35.0,139.0,8.0,2.0
2026-06-01T00:00:00Z,-33.0,-70.0,35.0,5.0
"""


@pytest.fixture
def catalog_csv(tmp_path):
    path = tmp_path / "catalog.csv"
    path.write_text(SEQUENCE_CSV)
    return path


class TestArgDefaults:
    def test_collect_defaults(self):
        parser = build_parser()
        args = parser.parse_args(["collect", "--output", "out.csv"])
        assert args.start is None
        assert args.end is None
        assert args.min_mag is None
        assert args.limit == 500

    def test_explicit_dates(self):
        parser = build_parser()
        args = parser.parse_args([
            "collect",
            "--start", "2026-01-01",
            "--end", "2026-01-31",
            "--output", "out.csv",
        ])
        assert args.start == date(2026, 1, 1)
        assert args.end == date(2026, 1, 31)

    def test_cluster_defaults(self):
        parser = build_parser()
        args = parser.parse_args(["cluster", "--input", "in.csv", "--output", "out.json"])
        assert args.algorithm == "dbscan"
        assert args.eps == 0.5
        assert args.min_pts == 3
        assert args.k == 4
        assert args.max_iterations == 10
        assert args.seed is None

    def test_decluster_defaults(self):
        parser = build_parser()
        args = parser.parse_args(["decluster", "--input", "in.csv", "--output", "out.json"])
        assert args.algorithm == "nnd"
        assert args.omori_p == 1.0
        assert args.omori_c == 0.05
        assert args.rate_threshold == 0.1
        assert args.mainshocks is None

    def test_unknown_algorithm_rejected(self):
        parser = build_parser()
        with pytest.raises(SystemExit):
            parser.parse_args([
                "decluster", "--input", "in.csv", "--output", "out.json",
                "--algorithm", "etas",
            ])

    def test_no_command_exits(self):
        with pytest.raises(SystemExit):
            main([])


class TestCollectCommand:
    @patch("quake_insight.cli.fetch_catalog", return_value=FIXTURE_EVENTS)
    def test_writes_csv(self, mock_fetch, tmp_path):
        outfile = tmp_path / "output.csv"
        main([
            "collect",
            "--start", "2026-02-09",
            "--end", "2026-02-13",
            "--min-mag", "6.0",
            "--output", str(outfile),
        ])

        lines = outfile.read_text().strip().split("\n")
        assert lines[0] == "time,latitude,longitude,depth,magnitude"
        assert lines[1] == "1770903271114,35.6762,139.6503,25.0,6.3"
        assert len(lines) == 3

        kwargs = mock_fetch.call_args.kwargs
        assert kwargs["start"] == date(2026, 2, 9)
        assert kwargs["end"] == date(2026, 2, 13)
        assert kwargs["min_mag"] == 6.0

    @patch("quake_insight.cli.fetch_catalog", return_value=FIXTURE_EVENTS)
    def test_default_window_is_thirty_days(self, mock_fetch, tmp_path):
        main(["collect", "--output", str(tmp_path / "out.csv")])
        kwargs = mock_fetch.call_args.kwargs
        assert (kwargs["end"] - kwargs["start"]).days == 30

    @patch("quake_insight.cli.fetch_catalog", return_value=FIXTURE_EVENTS)
    def test_prints_summary(self, mock_fetch, tmp_path, capsys):
        outfile = tmp_path / "output.csv"
        main(["collect", "--output", str(outfile)])
        assert f"Wrote 2 events to {outfile}" in capsys.readouterr().out

    @patch(
        "quake_insight.cli.fetch_catalog",
        side_effect=httpx.ConnectError("connection refused"),
    )
    def test_network_error_exits(self, mock_fetch, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc_info:
            main(["collect", "--output", str(tmp_path / "out.csv")])
        assert exc_info.value.code == 1
        assert "connection refused" in capsys.readouterr().out


class TestClusterCommand:
    def test_writes_json(self, catalog_csv, tmp_path, capsys):
        outfile = tmp_path / "clusters.json"
        main(["cluster", "--input", str(catalog_csv), "--output", str(outfile)])

        result = json.loads(outfile.read_text())
        assert result["algorithm"] == "dbscan"
        assert [c["size"] for c in result["clusters"]] == [5]
        assert result["noiseEvents"] == 1
        assert "Wrote 1 clusters" in capsys.readouterr().out

    def test_kmeans_with_seed(self, catalog_csv, tmp_path):
        outfile = tmp_path / "clusters.json"
        main([
            "cluster", "--input", str(catalog_csv), "--output", str(outfile),
            "--algorithm", "kmeans", "--k", "2", "--seed", "1",
        ])
        result = json.loads(outfile.read_text())
        assert sorted(c["size"] for c in result["clusters"]) == [1, 5]

    def test_too_many_centroids_exits(self, catalog_csv, tmp_path):
        with pytest.raises(SystemExit):
            main([
                "cluster", "--input", str(catalog_csv), "--output", str(tmp_path / "x.json"),
                "--algorithm", "kmeans", "--k", "3",
            ])


class TestDeclusterCommand:
    def test_writes_json_and_split_csvs(self, catalog_csv, tmp_path, capsys):
        outfile = tmp_path / "decluster.json"
        mainshocks = tmp_path / "mainshocks.csv"
        aftershocks = tmp_path / "aftershocks.csv"
        main([
            "decluster",
            "--input", str(catalog_csv),
            "--output", str(outfile),
            "--mainshocks", str(mainshocks),
            "--aftershocks", str(aftershocks),
        ])

        result = json.loads(outfile.read_text())
        assert result["algorithm"] == "nnd"
        assert result["beforeDeclustering"]["totalEvents"] == 6
        assert result["afterDeclustering"]["totalEvents"] == 2

        main_lines = mainshocks.read_text().strip().split("\n")
        after_lines = aftershocks.read_text().strip().split("\n")
        assert main_lines[0] == "time,latitude,longitude,depth,magnitude"
        assert len(main_lines) == 3
        assert len(after_lines) == 5

        out = capsys.readouterr().out
        assert "Wrote 2 mainshocks and 4 aftershocks" in out
        assert f"Wrote 2 mainshocks to {mainshocks}" in out

    def test_reasenberg_parameters(self, catalog_csv, tmp_path):
        outfile = tmp_path / "decluster.json"
        main([
            "decluster", "--input", str(catalog_csv), "--output", str(outfile),
            "--algorithm", "reasenberg", "--omori-p", "1.2", "--rate-threshold", "0.5",
        ])
        specific = json.loads(outfile.read_text())["algorithmSpecific"]
        assert specific["pValue"] == 1.2
        assert specific["rateThreshold"] == 0.5

    def test_missing_columns_exits(self, tmp_path, capsys):
        bad = tmp_path / "bad.csv"
        bad.write_text("time,magnitude\n2026-01-15T12:00:00Z,5.0\n")
        with pytest.raises(SystemExit) as exc_info:
            main(["decluster", "--input", str(bad), "--output", str(tmp_path / "x.json")])
        assert exc_info.value.code == 1
        assert "missing" in capsys.readouterr().out.lower()

    def test_empty_catalog_exits(self, tmp_path, capsys):
        empty = tmp_path / "empty.csv"
        empty.write_text("time,latitude,longitude,depth,magnitude\n")
        with pytest.raises(SystemExit):
            main(["decluster", "--input", str(empty), "--output", str(tmp_path / "x.json")])
        assert "No data available" in capsys.readouterr().out


class TestEdaCommand:
    def test_gutenberg_richter(self, catalog_csv, tmp_path):
        outfile = tmp_path / "gr.json"
        main([
            "eda", "--input", str(catalog_csv), "--output", str(outfile),
            "--analysis", "gutenberg-richter",
        ])
        result = json.loads(outfile.read_text())
        assert result["analysis"] == "gutenberg-richter"
        assert [row["magnitude"] for row in result["data"]] == [2.0, 3.0, 5.0, 6.0]

    def test_omori_nonlinear_flag(self, catalog_csv, tmp_path):
        outfile = tmp_path / "omori.json"
        with pytest.warns(DegenerateFitWarning):
            main([
                "eda", "--input", str(catalog_csv), "--output", str(outfile),
                "--analysis", "omori", "--nonlinear",
            ])
        result = json.loads(outfile.read_text())
        assert result["mainshock"]["magnitude"] == 6.0
        assert set(result["omoriParams"]) == {"p", "c", "K"}


class TestPredictCommand:
    def test_writes_predictions(self, catalog_csv, tmp_path, capsys):
        outfile = tmp_path / "prediction.json"
        main(["predict", "--input", str(catalog_csv), "--output", str(outfile)])
        result = json.loads(outfile.read_text())
        assert result["algorithm"] == "linear"
        assert result["trainingEvents"] == 4
        assert [row["actual"] for row in result["predictions"]] == [2.0, 5.0]
        assert "Wrote 2 predictions" in capsys.readouterr().out

    def test_too_small_catalog_exits(self, tmp_path, capsys):
        small = tmp_path / "small.csv"
        small.write_text("\n".join(SEQUENCE_CSV.splitlines()[:3]) + "\n")
        with pytest.raises(SystemExit) as exc_info:
            main(["predict", "--input", str(small), "--output", str(tmp_path / "x.json")])
        assert exc_info.value.code == 1
        assert "Magnitude prediction needs" in capsys.readouterr().out
