from .main import main

if __name__ == "__main__":
    # Run the OpenAI-compatible gateway (HOST/PORT from settings, default 0.0.0.0:6002)
    main()
