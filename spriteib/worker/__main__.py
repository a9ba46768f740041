from spriteib.worker.main import main

main()
