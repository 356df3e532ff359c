from dotenv import load_dotenv

# Config reads the environment at import time, so .env must load first.
load_dotenv()

from courier_desk import create_app  # noqa: E402


def main() -> None:
    app = create_app()
    app.run(host="0.0.0.0", port=int(app.config.get("PORT", 3000)))


if __name__ == "__main__":
    main()
