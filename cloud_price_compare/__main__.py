from cloud_price_compare.cli import main

if __name__ == "__main__":
    main()
