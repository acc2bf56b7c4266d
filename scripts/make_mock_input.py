import json
import random
import argparse
from pathlib import Path

def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--months", type=int, default=3, help="how many months back to generate (0 = current only)")
    ap.add_argument("--clients", type=int, default=100, help="new clients per month")
    ap.add_argument("--repeat-ratio", type=float, default=0.3, help="share of clients repeated from the previous month")
    ap.add_argument("--non-entity-ratio", type=float, default=0.2, help="share of new clients that are non-entity tokens")
    ap.add_argument("--segments", type=int, default=4, help="num_segments per month")
    ap.add_argument("--seed", type=int, default=42)
    ap.add_argument("--out", type=Path, default=Path("data/mock_input.json"))
    args = ap.parse_args()

    rng = random.Random(args.seed)
    args.out.parent.mkdir(parents=True, exist_ok=True)

    data = []
    # oldest month first, so repeats always have a source already generated
    for months_ago in range(args.months, -1, -1):
        non_entity = sum(1 for _ in range(args.clients) if rng.random() < args.non_entity_ratio)
        clients = [
            {"count": args.clients - non_entity} if args.clients > non_entity else None,
            {"count": non_entity, "nonEntity": True} if non_entity else None,
        ]
        if months_ago < args.months:
            repeated = int((args.clients - prev_non_entity) * args.repeat_ratio)
            if repeated:
                clients.append({"count": repeated, "repeated": True})
        prev_non_entity = non_entity
        month = {
            "monthsAgo": months_ago,
            "all": {"clients": [c for c in clients if c]},
            "numSegments": args.segments,
        }
        if args.segments > 2 and rng.random() < 0.3:
            month["skipSegmentIndexes"] = [rng.randrange(args.segments)]
        data.append(month)

    payload = {"write": ["WRITE_ENTITIES", "WRITE_PRECOMPUTED_QUERIES"], "data": data}
    args.out.write_text(json.dumps(payload, indent=2), encoding="utf-8")
    print(f"[OK] wrote {len(data)} months → {args.out}")

if __name__ == "__main__":
    main()
