"""CLI for the Season-Aware Farming Advisor."""
import argparse
import asyncio
import json
import logging
import sys

from .errors import AdviceGenerationError
from .knowledge import CROPS, GROWTH_STAGE_IDS
from .orchestrator import AdviceOrchestrator, AdviceRequest


def print_advice(data: dict) -> None:
    meta = data.get("metadata", {})
    print(f"Crop: {data['crop']} | Season: {data['season']} | Source: {meta.get('advice_source', '-')}")
    print(data["forecast_summary"])

    for label in ("soil_ph_analysis", "growth_stage_advice", "variety_specific_tips"):
        if data.get(label):
            print(f"\n{label.replace('_', ' ').capitalize()}: {data[label]}")

    sections = (
        ("Actions", data["actions"]),
        ("Warnings", data["warnings"]),
        ("Productivity tips", data["productivity_tips"]),
        ("Resources", [f"{r['resource']} - {r['purpose']} ({r['cost_estimate']})"
                       for r in data["resources_needed"]]),
        ("Diseases", [f"{d['disease_name']} (risk: {d['seasonal_risk']})"
                      for d in data["possible_diseases"]]),
    )
    for title, items in sections:
        if items:
            print(f"\n{title}:")
            for item in items:
                print(f"  - {item}")


def cmd_advise(args) -> int:
    request = AdviceRequest(
        crop=args.crop,
        lat=args.lat,
        lon=args.lon,
        soil_ph=args.soil_ph,
        growth_stage=args.growth_stage,
        variety=args.variety,
        use_ai=False if args.no_ai else None,
    )
    try:
        advice = asyncio.run(AdviceOrchestrator().generate_advice(request))
    except AdviceGenerationError as e:
        print(str(e), file=sys.stderr)
        return 2

    data = advice.to_dict()
    if args.json:
        print(json.dumps(data, indent=2, ensure_ascii=False))
    else:
        print_advice(data)
    return 0


def cmd_serve(args) -> int:
    from .api import run_server
    run_server(host=args.host, port=args.port, reload=args.reload)
    return 0


def main(argv: list[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO)

    p = argparse.ArgumentParser(prog="farm-advisor", description="Season-Aware Farming Advisor")
    sub = p.add_subparsers(dest="command", required=True)

    a = sub.add_parser("advise", help="Generate farming advice")
    a.add_argument("--crop", required=True, choices=list(CROPS.keys()))
    a.add_argument("--lat", type=float)
    a.add_argument("--lon", type=float)
    a.add_argument("--soil-ph", type=float)
    a.add_argument("--growth-stage", choices=list(GROWTH_STAGE_IDS))
    a.add_argument("--variety")
    a.add_argument("--no-ai", action="store_true", help="Use rule-based advice only")
    a.add_argument("--json", action="store_true", help="Print the raw advice JSON")
    a.set_defaults(func=cmd_advise)

    s = sub.add_parser("serve", help="Run the HTTP API")
    s.add_argument("--host", default="0.0.0.0")
    s.add_argument("--port", type=int, default=3000)
    s.add_argument("--reload", action="store_true")
    s.set_defaults(func=cmd_serve)

    args = p.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
