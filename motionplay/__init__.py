"""Motion-capture decoding: .npy / RIC / joint JSON → normalized skeleton frames."""
