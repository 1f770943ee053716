# No Thanks (card game) simulator and tree search player.
