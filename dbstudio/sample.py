# Sample document used by the /sample endpoint and the tests
SAMPLE_DBML = """Table users {
  id int [pk, increment]
  email varchar [unique, not null]
  username varchar [unique, not null]
  full_name varchar
  created_at timestamp [default: 'now()']
  updated_at timestamp
}

Table posts {
  id int [pk, increment]
  user_id int [ref: > users.id]
  title varchar [not null]
  content text
  published boolean [default: false]
  created_at timestamp
  updated_at timestamp
}

Table comments {
  id int [pk, increment]
  post_id int [ref: > posts.id]
  user_id int [ref: > users.id]
  content text [not null]
  created_at timestamp
}

Table categories {
  id int [pk, increment]
  name varchar [unique, not null]
  description varchar
}

Table post_categories {
  post_id int [ref: > posts.id]
  category_id int [ref: > categories.id]

  indexes {
    (post_id, category_id) [pk]
  }
}"""
