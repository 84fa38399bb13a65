"""Allow running pgdoctor as python -m pgdoctor."""

from pgdoctor.main import main

if __name__ == "__main__":
    main()
