"""Allow running zapwatch with: python -m zapwatch"""

from zapwatch.app import main

if __name__ == "__main__":
    main()
