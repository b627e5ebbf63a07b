"""Mirror saved items from HN, Reddit, GitHub and Pinboard into Karakeep."""
