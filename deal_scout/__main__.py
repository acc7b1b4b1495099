from deal_scout.main import main

main()
