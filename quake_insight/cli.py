"""CLI for fetching earthquake catalogs and running the analysis engine."""

from __future__ import annotations

import argparse
import csv
import json
import logging
import sys
from datetime import date, timedelta

import httpx

from .analysis import (
    EdaAnalysis,
    run_clustering,
    run_declustering,
    run_eda,
    run_prediction,
)
from .catalog import NATIVE_COLUMNS, load_catalog_csv, write_catalog_csv
from .clustering import (
    CENTROID_TOLERANCE,
    DEFAULT_EPS,
    DEFAULT_K,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_MIN_PTS,
    ClusterParams,
    ClusteringAlgorithm,
)
from .decluster import (
    REASENBERG_C,
    REASENBERG_P,
    REASENBERG_RATE_THRESHOLD,
    DeclusterAlgorithm,
    DeclusterParams,
)
from .errors import AnalysisError
from .usgs import DEFAULT_LIMIT, fetch_catalog


def _parse_date(value: str) -> date:
    """Parse an ISO date string."""
    return date.fromisoformat(value)


def _add_input_output(sub: argparse.ArgumentParser) -> None:
    sub.add_argument(
        "--input", required=True,
        help="Input catalog CSV (time, latitude, longitude, depth, magnitude, "
             "or the NSC Date/Time/Latitude/Longitude/Depth/Magnitude layout)",
    )
    sub.add_argument("--output", required=True, help="Output JSON path for the result record")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="quake-insight",
        description="Cluster, decluster and fit earthquake catalogs.",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )
    sub = parser.add_subparsers(dest="command")

    # --- collect -----------------------------------------------------------
    collect = sub.add_parser("collect", help="Fetch a catalog from the USGS event service")
    collect.add_argument(
        "--start", type=_parse_date, default=None,
        help="Start date (ISO format, default: today - 30 days)",
    )
    collect.add_argument(
        "--end", type=_parse_date, default=None,
        help="End date (ISO format, default: today)",
    )
    collect.add_argument("--min-mag", type=float, default=None)
    collect.add_argument("--min-lat", type=float, default=None)
    collect.add_argument("--max-lat", type=float, default=None)
    collect.add_argument("--min-lon", type=float, default=None)
    collect.add_argument("--max-lon", type=float, default=None)
    collect.add_argument("--min-depth", type=float, default=None)
    collect.add_argument("--max-depth", type=float, default=None)
    collect.add_argument(
        "--limit", type=int, default=DEFAULT_LIMIT,
        help=f"Maximum number of events to request (default: {DEFAULT_LIMIT})",
    )
    collect.add_argument("--output", required=True, help="Output CSV file path")

    # --- cluster -----------------------------------------------------------
    clus = sub.add_parser("cluster", help="Spatially cluster a catalog")
    _add_input_output(clus)
    clus.add_argument(
        "--algorithm", default="dbscan",
        choices=[a.value for a in ClusteringAlgorithm],
        help="Clustering algorithm (default: dbscan)",
    )
    clus.add_argument(
        "--eps", type=float, default=DEFAULT_EPS,
        help=f"DBSCAN radius in degrees (default: {DEFAULT_EPS})",
    )
    clus.add_argument(
        "--min-pts", type=int, default=DEFAULT_MIN_PTS,
        help=f"DBSCAN core-point threshold (default: {DEFAULT_MIN_PTS})",
    )
    clus.add_argument(
        "--k", type=int, default=DEFAULT_K,
        help=f"Number of k-means centroids (default: {DEFAULT_K})",
    )
    clus.add_argument(
        "--max-iterations", type=int, default=DEFAULT_MAX_ITERATIONS,
        help=f"k-means iteration cap (default: {DEFAULT_MAX_ITERATIONS})",
    )
    clus.add_argument(
        "--seed", type=int, default=None,
        help="Seed for k-means centroid sampling (default: random)",
    )

    # --- decluster ---------------------------------------------------------
    declust = sub.add_parser(
        "decluster",
        help="Split a catalog into mainshocks and aftershocks",
    )
    _add_input_output(declust)
    declust.add_argument(
        "--algorithm", default="nnd",
        choices=[a.value for a in DeclusterAlgorithm],
        help="Declustering algorithm (default: nnd)",
    )
    declust.add_argument(
        "--eps", type=float, default=DEFAULT_EPS,
        help=f"DBSCAN radius in degrees, dbscan only (default: {DEFAULT_EPS})",
    )
    declust.add_argument(
        "--min-pts", type=int, default=DEFAULT_MIN_PTS,
        help=f"DBSCAN core-point threshold, dbscan only (default: {DEFAULT_MIN_PTS})",
    )
    declust.add_argument(
        "--omori-p", type=float, default=REASENBERG_P,
        help=f"Omori decay exponent, reasenberg only (default: {REASENBERG_P})",
    )
    declust.add_argument(
        "--omori-c", type=float, default=REASENBERG_C,
        help=f"Omori time offset in days, reasenberg only (default: {REASENBERG_C})",
    )
    declust.add_argument(
        "--rate-threshold", type=float, default=REASENBERG_RATE_THRESHOLD,
        help=f"Omori rate admission threshold, reasenberg only "
             f"(default: {REASENBERG_RATE_THRESHOLD})",
    )
    declust.add_argument(
        "--mainshocks", default=None,
        help="Optional output CSV path for mainshock events",
    )
    declust.add_argument(
        "--aftershocks", default=None,
        help="Optional output CSV path for aftershock events",
    )

    # --- eda ---------------------------------------------------------------
    eda = sub.add_parser("eda", help="Run an exploratory analysis (G-R, Omori, ...)")
    _add_input_output(eda)
    eda.add_argument(
        "--analysis", required=True,
        choices=[a.value for a in EdaAnalysis],
    )
    eda.add_argument(
        "--nonlinear", action="store_true",
        help="Fit Omori K, c and p jointly (omori only)",
    )

    # --- predict -----------------------------------------------------------
    predict = sub.add_parser(
        "predict",
        help="Predict magnitudes of the latest 30%% of events by linear regression",
    )
    _add_input_output(predict)

    return parser


def _write_json(result: dict, path: str) -> None:
    with open(path, "w") as f:
        json.dump(result, f, indent=2)


def _write_rows(path: str, rows: list[dict], label: str) -> None:
    with open(path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=NATIVE_COLUMNS)
        writer.writeheader()
        writer.writerows(rows)
    print(f"Wrote {len(rows)} {label} to {path}")


def _run_collect(args: argparse.Namespace) -> None:
    today = date.today()
    start = args.start if args.start is not None else today - timedelta(days=30)
    end = args.end if args.end is not None else today

    events = fetch_catalog(
        start=start,
        end=end,
        min_mag=args.min_mag,
        min_lat=args.min_lat,
        max_lat=args.max_lat,
        min_lon=args.min_lon,
        max_lon=args.max_lon,
        min_depth=args.min_depth,
        max_depth=args.max_depth,
        limit=args.limit,
    )
    count = write_catalog_csv(events, args.output)
    print(f"Wrote {count} events to {args.output}")


def _run_cluster(args: argparse.Namespace) -> None:
    events = load_catalog_csv(args.input)
    params = ClusterParams(
        eps=args.eps,
        min_pts=args.min_pts,
        k=args.k,
        max_iterations=args.max_iterations,
        tolerance=CENTROID_TOLERANCE,
        seed=args.seed,
    )
    result = run_clustering(events, args.algorithm, params)
    _write_json(result, args.output)
    print(f"Wrote {len(result['clusters'])} clusters to {args.output}")


def _run_decluster(args: argparse.Namespace) -> None:
    events = load_catalog_csv(args.input)
    params = DeclusterParams(
        eps=args.eps,
        min_pts=args.min_pts,
        omori_p=args.omori_p,
        omori_c=args.omori_c,
        rate_threshold=args.rate_threshold,
    )
    result = run_declustering(events, args.algorithm, params)
    _write_json(result, args.output)
    print(
        f"Wrote {len(result['mainshocks'])} mainshocks and "
        f"{len(result['aftershocks'])} aftershocks to {args.output}"
    )
    if args.mainshocks:
        _write_rows(args.mainshocks, result["mainshocks"], "mainshocks")
    if args.aftershocks:
        _write_rows(args.aftershocks, result["aftershocks"], "aftershocks")


def _run_eda(args: argparse.Namespace) -> None:
    events = load_catalog_csv(args.input)
    result = run_eda(events, args.analysis, nonlinear=args.nonlinear)
    _write_json(result, args.output)
    print(f"Wrote {args.analysis} analysis to {args.output}")


def _run_predict(args: argparse.Namespace) -> None:
    events = load_catalog_csv(args.input)
    result = run_prediction(events)
    _write_json(result, args.output)
    print(f"Wrote {len(result['predictions'])} predictions to {args.output}")


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    commands = {
        "collect": _run_collect,
        "cluster": _run_cluster,
        "decluster": _run_decluster,
        "eda": _run_eda,
        "predict": _run_predict,
    }
    handler = commands.get(args.command)
    if handler is None:
        parser.print_help()
        sys.exit(1)

    try:
        handler(args)
    except (AnalysisError, ValueError, httpx.HTTPError) as exc:
        print(f"Error: {exc}")
        sys.exit(1)
