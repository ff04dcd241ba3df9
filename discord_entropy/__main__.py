from discord_entropy.cli import main

main()
