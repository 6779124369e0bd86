from pairledger.app import run

run()
