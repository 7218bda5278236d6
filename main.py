# imgpull entry point: python main.py fetch nginx
import sys

from imgpull.main import main

if __name__ == "__main__":
    sys.exit(main())
