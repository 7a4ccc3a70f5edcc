import os
import traceback

def main():
    print("=== BOOT CHECK ===")
    print("PYTHONPATH:", os.getcwd())
    print("PORT:", os.getenv("PORT"))
    print("DATABASE_URL set:", bool(os.getenv("DATABASE_URL")))
    print("CRON_SECRET set:", bool(os.getenv("CRON_SECRET")))
    for key in ("OPENAI_API_KEY", "ANTHROPIC_API_KEY", "GEMINI_API_KEY", "PERPLEXITY_API_KEY",
                "GROQ_API_KEY", "FINNHUB_API_KEY", "ALPHA_VANTAGE_API_KEY", "FRED_API_KEY"):
        print(f"{key} set:", bool(os.getenv(key)))
    print("SCHEDULER_ENABLED:", os.getenv("SCHEDULER_ENABLED", "true"))

    try:
        print("\n--- Trying to import market_oracle.api.main ---")
        from market_oracle.api.main import app
        print("✅ Imported market_oracle.api.main:app OK")
        routes = [getattr(r, "path", None) for r in app.router.routes]
        print("Routes:", [p for p in routes if p])
    except Exception:
        print("❌ Import failed:")
        traceback.print_exc()
        raise

if __name__ == "__main__":
    main()
